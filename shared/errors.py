"""
Typed application errors.

Services raise these instead of returning sentinels; every subclass carries
the HTTP status and a stable machine-readable code so routers don't need a
try/except per endpoint. `register_error_handlers` wires the single
translation point into a FastAPI app.
"""
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code: int = 400
    code: str = "bad_request"
    message: str = "Request could not be processed"

    def __init__(self, message: str | None = None, **context: Any):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": exc.message, **exc.context},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
