import os
import tempfile

# Configuration is read at import time, so the environment must be set up
# before any application module is imported.
_DB_DIR = tempfile.mkdtemp(prefix="commerce-core-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("MIDTRANS_SERVER_KEY", "SB-Mid-server-test-key")
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("CHECKOUT_RATE_LIMIT", "1000/minute")
os.environ.setdefault("MAINTENANCE_INTERVAL_SECONDS", "0")

from decimal import Decimal

import httpx
import pytest

from shared.config import settings
from shared.config.database import AsyncSessionLocal, Base, engine
from shared.idempotency import models as idempotency_models  # noqa: F401
from shared.security import issue_token
from services.cart_service.main import cart_app
from services.cart_service.models import CartItem
from services.order_service.main import order_app
from services.order_service.repository import OrderRepository
from services.payment_service.exceptions import GatewayError
from services.payment_service.gateway import get_gateway
from services.payment_service.schemas import MidtransNotification, PaymentSession, TransactionStatus
from services.payment_service.signature import expected_signature
from services.product_service.models import Product


class FakeGateway:
    """In-memory stand-in for MidtransGateway with the same two coroutines."""

    def __init__(self):
        self.sessions: list[tuple[str, Decimal]] = []
        self.statuses: dict[str, TransactionStatus] = {}
        self.status_calls = 0
        self.session_error: Exception | None = None
        self.status_error: Exception | None = None
        # Awaited with the reference while the session call is "in flight"
        self.during_session = None

    async def create_transaction(self, order_reference, gross_amount, customer_name):
        if self.session_error is not None:
            raise self.session_error
        if self.during_session is not None:
            await self.during_session(order_reference)
        self.sessions.append((order_reference, gross_amount))
        return PaymentSession(
            token=f"snap-{order_reference}",
            redirect_url=f"https://app.sandbox.midtrans.com/snap/v4/redirection/{order_reference}",
        )

    async def get_status(self, transaction_id):
        self.status_calls += 1
        if self.status_error is not None:
            raise self.status_error
        try:
            return self.statuses[transaction_id]
        except KeyError:
            raise GatewayError("Transaction not found at gateway")


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_product():
    async def _make(name="Laptop", price="100.00", stock=10, seller_id="seller-1") -> Product:
        async with AsyncSessionLocal() as session:
            product = Product(name=name, price=Decimal(price), stock=stock, seller_id=seller_id)
            session.add(product)
            await session.commit()
            return product
    return _make


@pytest.fixture
def fill_cart():
    async def _fill(user_id: str, product: Product, quantity: int = 1) -> None:
        async with AsyncSessionLocal() as session:
            session.add(CartItem(user_id=user_id, product_id=product.id, quantity=quantity))
            await session.commit()
    return _fill


@pytest.fixture
def stock_of():
    async def _stock(product_id: int) -> int:
        async with AsyncSessionLocal() as session:
            product = await session.get(Product, product_id)
            return product.stock
    return _stock


@pytest.fixture
def load_order():
    async def _load(order_id: int):
        async with AsyncSessionLocal() as session:
            return await OrderRepository.get_order(session, order_id)
    return _load


@pytest.fixture
def signed_notification():
    """Builds a correctly signed webhook body and registers the matching gateway status."""
    counter = {"n": 0}

    def _build(
        gateway: FakeGateway,
        order_reference: str,
        transaction_status: str,
        gross_amount: str,
        fraud_status: str | None = None,
        payment_type: str = "bank_transfer",
        status_code: str = "200",
    ) -> MidtransNotification:
        counter["n"] += 1
        transaction_id = f"txn-{counter['n']}"
        gateway.statuses[transaction_id] = TransactionStatus(
            order_id=order_reference,
            transaction_status=transaction_status,
            gross_amount=gross_amount,
            status_code=status_code,
            transaction_id=transaction_id,
            fraud_status=fraud_status,
            payment_type=payment_type,
        )
        return MidtransNotification(
            order_id=order_reference,
            status_code=status_code,
            gross_amount=gross_amount,
            signature_key=expected_signature(
                order_reference, status_code, gross_amount, settings.MIDTRANS_SERVER_KEY
            ),
            transaction_id=transaction_id,
            transaction_status=transaction_status,
            fraud_status=fraud_status,
            payment_type=payment_type,
        )
    return _build


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1", role: str = "USER", **extra) -> dict:
        return {"Authorization": f"Bearer {issue_token(user_id, role)}", **extra}
    return _headers


@pytest.fixture
async def client(gateway):
    order_app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=order_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    order_app.dependency_overrides.clear()


@pytest.fixture
async def cart_client():
    transport = httpx.ASGITransport(app=cart_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
