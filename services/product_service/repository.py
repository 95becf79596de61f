from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Product

class ProductRepository:
    """
    Catalog reads plus the two statements allowed to touch Product.stock.

    Neither stock method commits: they run inside the caller's transaction
    so a reservation and the order it belongs to succeed or fail together.
    """

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int):
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def reserve_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """Decrement-if-enough in one statement. False means the row didn't have `quantity` left."""
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def restore_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
