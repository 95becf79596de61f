from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from .models import CartItem

class CartRepository:
    @staticmethod
    async def get_items(db: AsyncSession, user_id: str):
        result = await db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def get_item(db: AsyncSession, user_id: str, item_id: int):
        result = await db.execute(
            select(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
        )
        return result.scalars().first()

    @staticmethod
    async def get_item_for_product(db: AsyncSession, user_id: str, product_id: int):
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .where(CartItem.product_id == product_id)
        )
        return result.scalars().first()

    @staticmethod
    async def save(db: AsyncSession, item: CartItem):
        db.add(item)
        await db.commit()
        # Responses embed the product, so load it now rather than lazily outside the session
        await db.refresh(item, attribute_names=["product"])
        return item

    @staticmethod
    async def remove_item(db: AsyncSession, item: CartItem):
        await db.delete(item)
        await db.commit()

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str):
        await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await db.commit()

    @staticmethod
    async def delete_products(db: AsyncSession, user_id: str, product_ids: Iterable[int]):
        """Drops the given lines without committing; used by checkout inside its own transaction."""
        await db.execute(
            delete(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id.in_(list(product_ids)),
            )
        )
