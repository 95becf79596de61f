import pytest

from services.order_service.exceptions import OrderNotFound
from services.order_service.models import OrderStatus
from services.order_service.service import OrderService
from services.payment_service.exceptions import (
    AmountMismatch,
    GatewayTimeout,
    InvalidSignature,
    MalformedReference,
    NotificationMismatch,
)
from services.payment_service.schemas import TransactionStatus
from services.payment_service.service import PaymentService


@pytest.fixture
def checkout(db, gateway, make_product, fill_cart, load_order):
    """Places one order for user-1 and returns (order, product)."""
    async def _checkout(price="5000000.00", stock=5, quantity=1):
        product = await make_product("Laptop", price, stock=stock)
        await fill_cart("user-1", product, quantity)
        created = await OrderService.create_order(db, gateway, "user-1")
        return await load_order(created.order_id), product
    return _checkout


async def test_settlement_marks_order_paid(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")

    result = await PaymentService.handle_notification(db, gateway, notification)

    assert result.status == "ok"
    paid = await load_order(order.id)
    assert paid.status == OrderStatus.PAID
    assert paid.payment_type == "bank_transfer"


async def test_duplicate_delivery_is_applied_once(db, gateway, checkout, signed_notification, stock_of, load_order):
    order, product = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")

    results = [await PaymentService.handle_notification(db, gateway, notification) for _ in range(3)]

    assert [r.status for r in results] == ["ok", "ignored", "ignored"]
    assert (await load_order(order.id)).status == OrderStatus.PAID
    assert await stock_of(product.id) == 4


async def test_capture_accept_marks_paid(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(
        gateway, order.gateway_order_id, "capture", "5000000.00", fraud_status="accept", payment_type="credit_card"
    )

    await PaymentService.handle_notification(db, gateway, notification)

    paid = await load_order(order.id)
    assert paid.status == OrderStatus.PAID
    assert paid.payment_type == "credit_card"


async def test_capture_challenge_holds_for_review_then_settles(
    db, gateway, checkout, signed_notification, load_order
):
    order, _ = await checkout()
    challenge = signed_notification(
        gateway, order.gateway_order_id, "capture", "5000000.00", fraud_status="challenge"
    )
    await PaymentService.handle_notification(db, gateway, challenge)
    assert (await load_order(order.id)).status == OrderStatus.PROCESSING

    settled = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    await PaymentService.handle_notification(db, gateway, settled)
    assert (await load_order(order.id)).status == OrderStatus.PAID


@pytest.mark.parametrize("transaction_status", ["cancel", "deny", "expire", "failure"])
async def test_failed_payment_cancels_and_restores_stock(
    db, gateway, checkout, signed_notification, stock_of, load_order, transaction_status
):
    order, product = await checkout(stock=5, quantity=2)
    assert await stock_of(product.id) == 3
    notification = signed_notification(gateway, order.gateway_order_id, transaction_status, "10000000.00")

    first = await PaymentService.handle_notification(db, gateway, notification)
    second = await PaymentService.handle_notification(db, gateway, notification)

    assert (first.status, second.status) == ("ok", "ignored")
    assert (await load_order(order.id)).status == OrderStatus.CANCELED
    assert await stock_of(product.id) == 5


async def test_pending_notification_changes_nothing(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "pending", "5000000.00", status_code="201")

    result = await PaymentService.handle_notification(db, gateway, notification)

    assert result.status == "ignored"
    assert (await load_order(order.id)).status == OrderStatus.PENDING


async def test_late_expire_after_settlement_is_ignored(
    db, gateway, checkout, signed_notification, stock_of, load_order
):
    order, product = await checkout()
    settled = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    expired = signed_notification(gateway, order.gateway_order_id, "expire", "5000000.00", status_code="407")

    await PaymentService.handle_notification(db, gateway, settled)
    result = await PaymentService.handle_notification(db, gateway, expired)

    assert result.status == "ignored"
    assert (await load_order(order.id)).status == OrderStatus.PAID
    assert await stock_of(product.id) == 4


async def test_gateway_status_wins_over_notification_body(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    gateway.statuses[notification.transaction_id] = gateway.statuses[notification.transaction_id].model_copy(
        update={"transaction_status": "pending"}
    )

    result = await PaymentService.handle_notification(db, gateway, notification)

    assert result.status == "ignored"
    assert (await load_order(order.id)).status == OrderStatus.PENDING


async def test_tampered_notification_is_rejected_before_gateway_call(
    db, gateway, checkout, signed_notification, load_order
):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    notification.gross_amount = "1.00"

    with pytest.raises(InvalidSignature):
        await PaymentService.handle_notification(db, gateway, notification)

    assert gateway.status_calls == 0
    assert (await load_order(order.id)).status == OrderStatus.PENDING


async def test_amount_mismatch_cancels_and_restores_stock(
    db, gateway, checkout, signed_notification, stock_of, load_order
):
    order, product = await checkout(price="6000000.00", stock=5)
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")

    with pytest.raises(AmountMismatch):
        await PaymentService.handle_notification(db, gateway, notification)

    assert (await load_order(order.id)).status == OrderStatus.CANCELED
    assert await stock_of(product.id) == 5


async def test_amount_scale_difference_is_not_a_mismatch(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout(price="6000000.00")
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "6000000")

    result = await PaymentService.handle_notification(db, gateway, notification)

    assert result.status == "ok"
    assert (await load_order(order.id)).status == OrderStatus.PAID


async def test_amount_mismatch_leaves_paid_order_alone(
    db, gateway, checkout, signed_notification, stock_of, load_order
):
    order, product = await checkout(price="5000000.00", stock=5)
    await PaymentService.handle_notification(
        db, gateway, signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    )

    with pytest.raises(AmountMismatch):
        await PaymentService.handle_notification(
            db, gateway, signed_notification(gateway, order.gateway_order_id, "settlement", "6000000.00")
        )

    assert (await load_order(order.id)).status == OrderStatus.PAID
    assert await stock_of(product.id) == 4


async def test_gateway_timeout_leaves_order_untouched(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    gateway.status_error = GatewayTimeout()

    with pytest.raises(GatewayTimeout):
        await PaymentService.handle_notification(db, gateway, notification)

    assert (await load_order(order.id)).status == OrderStatus.PENDING

    # The gateway redelivers; once it answers the order settles normally
    gateway.status_error = None
    result = await PaymentService.handle_notification(db, gateway, notification)
    assert result.status == "ok"


async def test_malformed_reference_is_rejected(db, gateway, signed_notification):
    notification = signed_notification(gateway, "invoice-abc", "settlement", "100.00")

    with pytest.raises(MalformedReference):
        await PaymentService.handle_notification(db, gateway, notification)


async def test_unknown_order_is_not_found(db, gateway, signed_notification):
    notification = signed_notification(gateway, "order-999-1700000000000", "settlement", "100.00")

    with pytest.raises(OrderNotFound):
        await PaymentService.handle_notification(db, gateway, notification)


async def test_gateway_reporting_another_order_is_rejected(db, gateway, checkout, signed_notification, load_order):
    order, _ = await checkout()
    notification = signed_notification(gateway, order.gateway_order_id, "settlement", "5000000.00")
    gateway.statuses[notification.transaction_id] = TransactionStatus(
        order_id="order-999-1700000000000", transaction_status="settlement", gross_amount="5000000.00"
    )

    with pytest.raises(NotificationMismatch):
        await PaymentService.handle_notification(db, gateway, notification)

    assert (await load_order(order.id)).status == OrderStatus.PENDING
