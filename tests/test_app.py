import httpx
import pytest

from main import app
from services.order_service.main import order_app
from services.payment_service.gateway import get_gateway


@pytest.fixture
async def root_client(gateway):
    order_app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as c:
        yield c
    order_app.dependency_overrides.clear()


async def test_service_apps_are_mounted(root_client):
    assert (await root_client.get("/order/health")).json()["service"] == "order"
    assert (await root_client.get("/cart/health")).json()["service"] == "cart"


async def test_post_order_without_trailing_slash_keeps_method(root_client, auth_headers, make_product, fill_cart):
    product = await make_product(stock=5)
    await fill_cart("user-1", product, 1)

    resp = await root_client.post("/order", headers=auth_headers("user-1"))

    assert resp.history[0].status_code == 307
    assert resp.history[0].headers["location"].endswith("/order/")
    assert resp.status_code == 201
    assert resp.json()["orderId"]
