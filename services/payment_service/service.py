"""
Gateway notification reconciliation.

A webhook body is only a hint that something happened. Its signature proves
it came from someone holding the server key; the gateway's answer to a direct
status query decides what actually happened. Local state is then changed in
one transaction, guarded by the order's current status, so redelivered,
reordered or concurrent notifications can never apply a transition twice.
"""
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import atomic
from shared.observability import ecomm_stock_restored_total, ecomm_webhook_notifications_total
from services.order_service.exceptions import OrderNotFound
from services.order_service.models import Order, OrderStatus, RECONCILABLE_STATUSES
from services.order_service.repository import OrderRepository

from .exceptions import (
    AmountMismatch,
    GatewayError,
    InvalidSignature,
    MalformedNotification,
    NotificationMismatch,
)
from .gateway import MidtransGateway, parse_order_reference
from .schemas import MidtransNotification, NotificationResult
from .signature import verify_signature

logger = structlog.get_logger(__name__)

TWO_PLACES = Decimal("0.01")
CANCEL_STATUSES = frozenset({"cancel", "deny", "expire", "failure"})


def map_transaction_status(transaction_status: str, fraud_status: str | None) -> OrderStatus | None:
    """Gateway vocabulary -> order status. None means the notification implies no transition."""
    if transaction_status == "capture":
        if fraud_status == "accept":
            return OrderStatus.PAID
        if fraud_status == "challenge":
            return OrderStatus.PROCESSING  # held for manual review
        return None
    if transaction_status == "settlement":
        return OrderStatus.PAID
    if transaction_status in CANCEL_STATUSES:
        return OrderStatus.CANCELED
    return None


def normalize_amount(value: str | Decimal) -> Decimal:
    """Fixed two-decimal scale so '6000000' and '6000000.00' compare equal."""
    try:
        return Decimal(str(value)).quantize(TWO_PLACES)
    except (InvalidOperation, ValueError) as e:
        raise MalformedNotification("gross_amount is not a decimal amount") from e


class PaymentService:

    @staticmethod
    async def handle_notification(
        db: AsyncSession, gateway: MidtransGateway, notification: MidtransNotification
    ) -> NotificationResult:
        log = logger.bind(order_reference=notification.order_id, transaction_id=notification.transaction_id)

        if not verify_signature(notification, settings.MIDTRANS_SERVER_KEY):
            log.error("notification_invalid_signature")
            ecomm_webhook_notifications_total.labels(outcome="invalid_signature").inc()
            raise InvalidSignature()

        # Never inside a transaction: this can block for the whole gateway timeout
        try:
            status = await gateway.get_status(notification.transaction_id)
        except GatewayError:
            log.warning("notification_status_query_failed")
            ecomm_webhook_notifications_total.labels(outcome="gateway_error").inc()
            raise

        if status.order_id != notification.order_id:
            log.error("notification_reference_mismatch", gateway_order_reference=status.order_id)
            ecomm_webhook_notifications_total.labels(outcome="notification_mismatch").inc()
            raise NotificationMismatch()

        order_id = parse_order_reference(status.order_id)
        gross_amount = normalize_amount(status.gross_amount)
        target = map_transaction_status(status.transaction_status, status.fraud_status)

        amount_mismatch = False
        restored = False
        async with atomic(db):
            order = await OrderRepository.get_order(db, order_id, refresh=True)
            if order is None:
                raise OrderNotFound()

            if order.total_price.quantize(TWO_PLACES) != gross_amount:
                amount_mismatch = True
                log.critical(
                    "notification_amount_mismatch",
                    order_id=order.id,
                    user_id=order.user_id,
                    expected=str(order.total_price),
                    received=str(gross_amount),
                )
                # A settled order stays as it is; an open one is frozen and its stock released
                restored = await PaymentService._cancel_and_release(db, order)
                result = None
            else:
                result, restored = await PaymentService._apply_transition(
                    db, order, target, status.payment_type
                )

        if amount_mismatch:
            if restored:
                ecomm_stock_restored_total.labels(reason="amount_mismatch").inc()
            ecomm_webhook_notifications_total.labels(outcome="amount_mismatch").inc()
            raise AmountMismatch()

        if restored:
            ecomm_stock_restored_total.labels(reason="gateway").inc()
        ecomm_webhook_notifications_total.labels(outcome=result.status).inc()
        return result

    @staticmethod
    async def _cancel_and_release(db: AsyncSession, order: Order) -> bool:
        canceled = await OrderRepository.transition(
            db, order.id, OrderStatus.CANCELED, allowed_from=RECONCILABLE_STATUSES
        )
        if canceled:
            await OrderRepository.release_reservation(db, order.items)
        return canceled

    @staticmethod
    async def _apply_transition(
        db: AsyncSession, order: Order, target: OrderStatus | None, payment_type: str | None
    ) -> tuple[NotificationResult, bool]:
        if order.status not in RECONCILABLE_STATUSES:
            return NotificationResult(status="ignored", message="Order already processed"), False

        if target is None or target == order.status:
            return NotificationResult(status="ignored", message="No status change required"), False

        values = {"payment_type": payment_type} if target == OrderStatus.PAID else {}
        applied = await OrderRepository.transition(
            db, order.id, target, allowed_from=[order.status], **values
        )
        if not applied:
            # Another delivery moved the order after we read it
            return NotificationResult(status="ignored", message="Order already processed"), False

        restored = False
        if target == OrderStatus.CANCELED:
            await OrderRepository.release_reservation(db, order.items)
            restored = True
            logger.info("order_canceled_by_gateway", order_id=order.id)
        else:
            logger.info("order_status_reconciled", order_id=order.id, from_status=order.status.value, to_status=target.value)
        return NotificationResult(status="ok"), restored
