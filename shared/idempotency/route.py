"""
Idempotency-Key support for mutating endpoints.

Attach with `APIRouter(route_class=IdempotentRoute)`. When an authenticated
caller sends an `Idempotency-Key` header on a POST/PUT/PATCH/DELETE, the
first successful (2xx) response is stored against the key and replayed
verbatim for every retry, flagged with `Idempotent-Replayed: true`, without
running the endpoint again. A key stays bound to the user, method and path
of its first use. Requests without a key or without a valid bearer token
pass straight through.

The lookup happens before FastAPI resolves the endpoint's dependencies, so
the caller is read directly from the bearer token here.
"""
from typing import Callable

import structlog
from fastapi import Request, Response
from fastapi.routing import APIRoute
from sqlalchemy.exc import SQLAlchemyError

from shared.config.database import AsyncSessionLocal
from shared.errors import AppError
from shared.observability import ecomm_idempotency_replays_total
from shared.security.dependencies import Principal, principal_from_request

from .models import IdempotencyRecord
from .repository import IdempotencyRepository

logger = structlog.get_logger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "Idempotent-Replayed"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
MAX_KEY_LENGTH = 255


class IdempotencyKeyMisuse(AppError):
    code = "idempotency_key_misuse"
    message = "Invalid Idempotency Key"


class IdempotencyKeyReused(AppError):
    status_code = 422
    code = "idempotency_key_reused"
    message = "Idempotency key is already used for a different request"


class InvalidIdempotencyKey(AppError):
    code = "invalid_idempotency_key"
    message = f"Idempotency key must be 1-{MAX_KEY_LENGTH} characters"


def replay(record: IdempotencyRecord, principal: Principal, method: str, path: str) -> Response:
    if record.user_id != principal.user_id:
        logger.error("idempotency_key_misuse", idempotency_key=record.key, user_id=principal.user_id)
        raise IdempotencyKeyMisuse()
    if record.method != method or record.path != path:
        logger.warning(
            "idempotency_key_reused",
            idempotency_key=record.key,
            user_id=principal.user_id,
            original=f"{record.method} {record.path}",
            attempted=f"{method} {path}",
        )
        raise IdempotencyKeyReused()

    logger.info("idempotency_hit", idempotency_key=record.key, user_id=principal.user_id)
    ecomm_idempotency_replays_total.inc()
    return Response(
        content=record.response,
        status_code=record.status_code,
        media_type="application/json",
        headers={REPLAY_HEADER: "true"},
    )


async def remember(key: str, principal: Principal, method: str, path: str, response: Response) -> None:
    record = IdempotencyRecord(
        key=key,
        user_id=principal.user_id,
        method=method,
        path=path,
        response=bytes(response.body).decode("utf-8"),
        status_code=response.status_code,
    )
    try:
        async with AsyncSessionLocal() as db:
            stored = await IdempotencyRepository.create(db, record)
    except SQLAlchemyError:
        # The endpoint already committed; its response still goes out
        logger.exception("idempotency_key_store_failed", idempotency_key=key, user_id=principal.user_id)
        return
    if stored:
        logger.info("idempotency_key_saved", idempotency_key=key, user_id=principal.user_id)
    else:
        # The first writer's outcome is the one retries will see
        logger.warning("idempotency_key_race", idempotency_key=key, user_id=principal.user_id)


class IdempotentRoute(APIRoute):

    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()

        async def idempotent_handler(request: Request) -> Response:
            key = request.headers.get(IDEMPOTENCY_HEADER)
            if not key or request.method not in MUTATING_METHODS:
                return await handler(request)

            principal = principal_from_request(request)
            if principal is None:
                return await handler(request)

            if len(key) > MAX_KEY_LENGTH:
                raise InvalidIdempotencyKey()

            method, path = request.method, request.url.path
            async with AsyncSessionLocal() as db:
                record = await IdempotencyRepository.get_by_key(db, key)
            if record is not None:
                return replay(record, principal, method, path)

            response = await handler(request)
            if 200 <= response.status_code < 300 and getattr(response, "body", None) is not None:
                await remember(key, principal, method, path, response)
            return response

        return idempotent_handler
