import math
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import atomic
from shared.errors import AppError
from shared.observability import (
    ecomm_checkout_duration_seconds,
    ecomm_checkout_total,
    ecomm_stock_restored_total,
)
from shared.security.dependencies import Principal, Role
from services.cart_service.repository import CartRepository
from services.product_service.repository import ProductRepository
from services.payment_service.exceptions import GatewayError
from services.payment_service.gateway import MidtransGateway, build_order_reference
from services.payment_service.schemas import PaymentSession

from .exceptions import (
    CannotCancel,
    CartEmpty,
    CartTooLarge,
    InsufficientStock,
    OrderAccessDenied,
    OrderNotFound,
    OrderNotPayable,
    PaymentSessionFailed,
)
from .models import Order, OrderItem, OrderStatus
from .repository import OrderRepository
from .schemas import (
    OrderCreatedResponse,
    OrderItemResponse,
    OrderPage,
    OrderResponse,
    OrderStatusUpdated,
    PageMeta,
)

logger = structlog.get_logger(__name__)


class OrderService:

    # --- Checkout ---

    @staticmethod
    async def create_order(db: AsyncSession, gateway: MidtransGateway, user_id: str) -> OrderCreatedResponse:
        """
        Turns the user's cart into a PENDING order, then opens a payment session for it.

        Reservation, order rows and cart cleanup commit together or not at all.
        The gateway is called only after that commit; if it fails the order
        stays PENDING with its stock held and PaymentSessionFailed is raised
        so the client can retry the session rather than the purchase.
        """
        started = time.perf_counter()
        try:
            order = await OrderService._reserve_and_create(db, user_id)
            session = await OrderService._open_payment_session(db, gateway, order.id, order.total_price, user_id)
        except AppError as e:
            ecomm_checkout_total.labels(status=e.code).inc()
            raise
        finally:
            ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)

        ecomm_checkout_total.labels(status="success").inc()
        logger.info("order_created", order_id=order.id, user_id=user_id, total_price=str(order.total_price))
        return OrderCreatedResponse(
            message="Order created successfully",
            order_id=order.id,
            payment_session_token=session.token,
            redirect_url=session.redirect_url,
        )

    @staticmethod
    async def _reserve_and_create(db: AsyncSession, user_id: str) -> Order:
        async with atomic(db):
            cart_items = await CartRepository.get_items(db, user_id)
            if not cart_items:
                raise CartEmpty()
            if len(cart_items) > settings.MAX_CART_ITEMS:
                raise CartTooLarge(settings.MAX_CART_ITEMS)

            # Same lock order for every checkout so overlapping carts can't deadlock
            cart_items = sorted(cart_items, key=lambda item: item.product_id)
            total_price = sum(
                (item.product.price * item.quantity for item in cart_items), Decimal("0")
            )

            for item in cart_items:
                if not await ProductRepository.reserve_stock(db, item.product_id, item.quantity):
                    logger.info("checkout_insufficient_stock", user_id=user_id, product_id=item.product_id)
                    raise InsufficientStock(item.product.name)

            order = Order(
                user_id=user_id,
                total_price=total_price,
                status=OrderStatus.PENDING,
                items=[
                    OrderItem(product_id=item.product_id, quantity=item.quantity, price=item.product.price)
                    for item in cart_items
                ],
            )
            db.add(order)
            await db.flush()

            await CartRepository.delete_products(db, user_id, [item.product_id for item in cart_items])
        return order

    @staticmethod
    async def _open_payment_session(
        db: AsyncSession, gateway: MidtransGateway, order_id: int, total_price: Decimal, user_id: str
    ) -> PaymentSession:
        reference = build_order_reference(order_id)
        try:
            session = await gateway.create_transaction(reference, total_price, f"User{user_id}")
        except GatewayError as e:
            logger.error("payment_session_failed", order_id=order_id, order_reference=reference, error=e.message)
            raise PaymentSessionFailed(order_id) from e

        async with atomic(db):
            attached = await OrderRepository.attach_payment_session(
                db, order_id, reference, session.token, session.redirect_url
            )
        if not attached:
            # Canceled by the user or the unpaid sweep while the gateway call was in flight
            logger.warning("payment_session_discarded", order_id=order_id, order_reference=reference)
            raise OrderNotPayable()
        return session

    @staticmethod
    async def retry_payment_session(
        db: AsyncSession, gateway: MidtransGateway, user_id: str, order_id: int
    ) -> OrderCreatedResponse:
        order = await OrderRepository.get_order(db, order_id, refresh=True)
        # End the read transaction; the gateway call below must not run inside one
        await db.commit()
        if order is None or order.user_id != user_id:
            raise OrderNotFound()
        if order.status != OrderStatus.PENDING:
            raise OrderNotPayable()

        if order.payment_session_token:
            return OrderCreatedResponse(
                message="Payment session already open",
                order_id=order.id,
                payment_session_token=order.payment_session_token,
                redirect_url=order.payment_redirect_url,
            )

        session = await OrderService._open_payment_session(db, gateway, order.id, order.total_price, user_id)
        logger.info("payment_session_reopened", order_id=order.id, user_id=user_id)
        return OrderCreatedResponse(
            message="Payment session created",
            order_id=order.id,
            payment_session_token=session.token,
            redirect_url=session.redirect_url,
        )

    # --- Queries ---

    @staticmethod
    def _page(data: list[OrderResponse], total: int, page: int, limit: int) -> OrderPage:
        return OrderPage(
            data=data,
            meta=PageMeta(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit) if total else 0,
                has_next=page * limit < total,
                has_prev=page > 1,
            ),
        )

    @staticmethod
    def _safe_limit(limit: int) -> int:
        return max(1, min(limit, settings.ORDER_PAGE_LIMIT_MAX))

    @staticmethod
    async def get_my_orders(db: AsyncSession, user_id: str, page: int = 1, limit: int = 10) -> OrderPage:
        limit = OrderService._safe_limit(limit)
        orders, total = await OrderRepository.list_orders(db, page, limit, user_id=user_id)
        return OrderService._page([OrderResponse.model_validate(o) for o in orders], total, page, limit)

    @staticmethod
    async def get_all_orders(
        db: AsyncSession, status: OrderStatus | None = None, page: int = 1, limit: int = 20
    ) -> OrderPage:
        limit = OrderService._safe_limit(limit)
        orders, total = await OrderRepository.list_orders(db, page, limit, status=status)
        return OrderService._page([OrderResponse.model_validate(o) for o in orders], total, page, limit)

    @staticmethod
    async def get_seller_orders(
        db: AsyncSession, seller_id: str, status: OrderStatus | None = None, page: int = 1, limit: int = 10
    ) -> OrderPage:
        limit = OrderService._safe_limit(limit)
        orders, total = await OrderRepository.list_orders(db, page, limit, status=status, seller_id=seller_id)
        data = []
        for order in orders:
            # Sellers only see their own lines of a shared order
            own_items = [
                OrderItemResponse.model_validate(item) for item in order.items if item.seller_id == seller_id
            ]
            data.append(OrderResponse.model_validate(order).model_copy(update={"items": own_items}))
        return OrderService._page(data, total, page, limit)

    @staticmethod
    async def get_order_details(db: AsyncSession, principal: Principal, order_id: int) -> Order:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise OrderNotFound()
        if principal.role != Role.ADMIN and order.user_id != principal.user_id:
            raise OrderAccessDenied()
        return order

    # --- Lifecycle ---

    @staticmethod
    async def cancel_order(db: AsyncSession, user_id: str, order_id: int) -> None:
        """
        User self-service cancel. The conditional UPDATE is the ownership check
        and the PENDING guard at once; zero rows means not found, not yours or
        already past PENDING, all reported as CannotCancel.
        """
        async with atomic(db):
            canceled = await OrderRepository.transition(
                db, order_id, OrderStatus.CANCELED, allowed_from=[OrderStatus.PENDING], user_id=user_id
            )
            if not canceled:
                raise CannotCancel()
            items = await OrderRepository.get_items(db, order_id)
            await OrderRepository.release_reservation(db, items)

        ecomm_stock_restored_total.labels(reason="user_cancel").inc()
        logger.info("order_canceled_by_user", order_id=order_id, user_id=user_id)

    @staticmethod
    async def update_order_status(db: AsyncSession, order_id: int, new_status: OrderStatus) -> OrderStatusUpdated:
        """
        Admin override; any status may be set. Stock is returned only on the
        way into CANCELED from something else, so toggling a canceled order
        back and forth never credits stock twice. Re-opening a canceled order
        does not re-reserve stock.
        """
        restored = False
        async with atomic(db):
            if new_status == OrderStatus.CANCELED:
                restored = await OrderRepository.transition(
                    db, order_id, OrderStatus.CANCELED, not_from=[OrderStatus.CANCELED]
                )
                if restored:
                    items = await OrderRepository.get_items(db, order_id)
                    await OrderRepository.release_reservation(db, items)
            elif not await OrderRepository.transition(db, order_id, new_status):
                raise OrderNotFound()

            order = await OrderRepository.get_order(db, order_id, refresh=True)
            if order is None:
                raise OrderNotFound()

        if restored:
            ecomm_stock_restored_total.labels(reason="admin_cancel").inc()
        logger.info("order_status_overridden", order_id=order_id, status=new_status.value, stock_restored=restored)
        message = "Order canceled by Admin. Stock returned." if restored else "Order status updated successfully"
        return OrderStatusUpdated(message=message, order=OrderResponse.model_validate(order))

    @staticmethod
    async def release_unpaid_orders(db: AsyncSession, older_than: timedelta) -> int:
        """Cancels PENDING orders that never got a payment session and gives their stock back."""
        cutoff = datetime.now(timezone.utc) - older_than
        candidates = await OrderRepository.find_unpaid_before(db, cutoff)
        await db.commit()

        released = 0
        for order_id in candidates:
            async with atomic(db):
                # Re-checked in the UPDATE: a retry may have attached a session since the scan
                canceled = await OrderRepository.transition(
                    db,
                    order_id,
                    OrderStatus.CANCELED,
                    allowed_from=[OrderStatus.PENDING],
                    conditions=[Order.payment_session_token.is_(None)],
                )
                if canceled:
                    items = await OrderRepository.get_items(db, order_id)
                    await OrderRepository.release_reservation(db, items)
            if canceled:
                released += 1
                ecomm_stock_restored_total.labels(reason="expired").inc()
                logger.info("unpaid_order_released", order_id=order_id)
        return released
