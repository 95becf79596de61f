from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, update

from services.product_service.models import Product
from services.product_service.repository import ProductRepository
from .models import Order, OrderItem, OrderStatus

class OrderRepository:
    """
    Order persistence. Status writes are conditional UPDATEs: the WHERE clause
    carries the state the caller expects, so a write racing another transition
    simply affects zero rows instead of overwriting it. Nothing here commits;
    callers own the transaction.
    """

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, refresh: bool = False):
        stmt = select(Order).where(Order.id == order_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_items(db: AsyncSession, order_id: int) -> Sequence[OrderItem]:
        result = await db.execute(select(OrderItem).where(OrderItem.order_id == order_id))
        return result.scalars().all()

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        page: int,
        limit: int,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        seller_id: str | None = None,
    ) -> tuple[Sequence[Order], int]:
        conditions = []
        if user_id is not None:
            conditions.append(Order.user_id == user_id)
        if status is not None:
            conditions.append(Order.status == status)
        if seller_id is not None:
            conditions.append(Order.items.any(OrderItem.product.has(Product.seller_id == seller_id)))

        total = await db.scalar(select(func.count(Order.id)).where(*conditions))
        result = await db.execute(
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    @staticmethod
    async def transition(
        db: AsyncSession,
        order_id: int,
        to_status: OrderStatus,
        allowed_from: Iterable[OrderStatus] | None = None,
        not_from: Iterable[OrderStatus] | None = None,
        user_id: str | None = None,
        conditions: Iterable = (),
        **values,
    ) -> bool:
        stmt = update(Order).where(Order.id == order_id, *conditions)
        if allowed_from is not None:
            stmt = stmt.where(Order.status.in_(list(allowed_from)))
        if not_from is not None:
            stmt = stmt.where(Order.status.not_in(list(not_from)))
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)

        result = await db.execute(
            stmt.values(status=to_status, **values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def attach_payment_session(
        db: AsyncSession, order_id: int, reference: str, token: str, redirect_url: str
    ) -> bool:
        """Records the session only while the order is still PENDING. False if it was canceled meanwhile."""
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
            .values(
                gateway_order_id=reference,
                payment_session_token=token,
                payment_redirect_url=redirect_url,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def release_reservation(db: AsyncSession, items: Iterable[OrderItem]) -> None:
        """Exact inverse of the checkout decrement, applied in the same product-id order."""
        for item in sorted(items, key=lambda i: i.product_id):
            await ProductRepository.restore_stock(db, item.product_id, item.quantity)

    @staticmethod
    async def find_unpaid_before(db: AsyncSession, cutoff: datetime) -> Sequence[int]:
        result = await db.execute(
            select(Order.id).where(
                Order.status == OrderStatus.PENDING,
                Order.payment_session_token.is_(None),
                Order.created_at < cutoff,
            )
        )
        return result.scalars().all()
