"""
Midtrans adapter: Snap session creation and Core API status queries over HTTPX.

Every call is bounded by GATEWAY_TIMEOUT_SECONDS and must be made outside an
open database transaction. Transport failures surface as GatewayTimeout or
GatewayError; nothing here touches local state.
"""
import re
import time
from decimal import Decimal
from urllib.parse import quote

import httpx
import structlog

from shared.config import settings

from .exceptions import GatewayError, GatewayTimeout, MalformedReference
from .schemas import PaymentSession, TransactionStatus

logger = structlog.get_logger(__name__)

SANDBOX_SNAP_URL = "https://app.sandbox.midtrans.com"
PRODUCTION_SNAP_URL = "https://app.midtrans.com"
SANDBOX_API_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_API_URL = "https://api.midtrans.com"

_REFERENCE_PATTERN = re.compile(r"^order-(\d+)-(\d+)$")


def build_order_reference(order_id: int) -> str:
    """Gateway-facing id, unique per session attempt: order-{id}-{epochMillis}."""
    return f"order-{order_id}-{int(time.time() * 1000)}"


def parse_order_reference(reference: str) -> int:
    match = _REFERENCE_PATTERN.match(reference or "")
    if not match:
        raise MalformedReference()
    return int(match.group(1))


def _wire_amount(amount: Decimal) -> int:
    # IDR has no minor unit; Midtrans takes gross_amount as a JSON integer
    if amount != amount.to_integral_value():
        raise GatewayError(f"Gateway only accepts whole amounts, got {amount}")
    return int(amount)


class MidtransGateway:
    def __init__(
        self,
        server_key: str,
        is_production: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.server_key = server_key
        self.snap_url = PRODUCTION_SNAP_URL if is_production else SANDBOX_SNAP_URL
        self.api_url = PRODUCTION_API_URL if is_production else SANDBOX_API_URL
        self.timeout = timeout
        self.transport = transport

    def _client(self, base_url: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url,
            auth=(self.server_key, ""),
            timeout=self.timeout,
            transport=self.transport,
            headers={"Accept": "application/json"},
        )

    async def _request(self, base_url: str, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client(base_url) as client:
                resp = await client.request(method, path, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException as e:
            logger.warning("gateway_timeout", path=path)
            raise GatewayTimeout() from e
        except httpx.HTTPStatusError as e:
            logger.error("gateway_http_error", path=path, status_code=e.response.status_code)
            raise GatewayError(f"Gateway responded with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("gateway_transport_error", path=path, error=str(e))
            raise GatewayError() from e
        except ValueError as e:
            logger.error("gateway_invalid_json", path=path)
            raise GatewayError("Gateway returned an unreadable response") from e

    async def create_transaction(self, order_reference: str, gross_amount: Decimal, customer_name: str) -> PaymentSession:
        payload = {
            "transaction_details": {
                "order_id": order_reference,
                "gross_amount": _wire_amount(gross_amount),
            },
            "customer_details": {"first_name": customer_name},
        }
        body = await self._request(self.snap_url, "POST", "/snap/v1/transactions", json=payload)
        try:
            return PaymentSession.model_validate(body)
        except ValueError as e:
            raise GatewayError("Gateway session response is missing token or redirect_url") from e

    async def get_status(self, transaction_id: str) -> TransactionStatus:
        body = await self._request(self.api_url, "GET", f"/v2/{quote(transaction_id, safe='')}/status")
        # Core API reports unknown transactions in the body, with HTTP 200
        if str(body.get("status_code")) == "404":
            raise GatewayError("Transaction not found at gateway")
        try:
            return TransactionStatus.model_validate(body)
        except ValueError as e:
            raise GatewayError("Gateway status response is incomplete") from e


_gateway = MidtransGateway(
    server_key=settings.MIDTRANS_SERVER_KEY,
    is_production=settings.MIDTRANS_IS_PRODUCTION,
    timeout=settings.GATEWAY_TIMEOUT_SECONDS,
)


def get_gateway() -> MidtransGateway:
    """FastAPI dependency; tests override it with an in-memory gateway."""
    return _gateway
