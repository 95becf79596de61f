from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository

from .exceptions import CartItemNotFound, ProductNotFound, StockNotSufficient
from .models import CartItem
from .repository import CartRepository
from .schemas import CartItemCreate, CartItemUpdate, CartResponse, CartSummary

logger = structlog.get_logger(__name__)


class CartService:
    """
    Cart mutations. The stock checks here only give early feedback to the
    shopper; the reservation at checkout is what actually prevents overselling.
    """

    @staticmethod
    async def add_to_cart(db: AsyncSession, user_id: str, data: CartItemCreate) -> tuple[CartItem, bool]:
        product = await ProductRepository.get_product_by_id(db, data.product_id)
        if not product:
            raise ProductNotFound()

        existing = await CartRepository.get_item_for_product(db, user_id, data.product_id)
        new_quantity = data.quantity + (existing.quantity if existing else 0)
        if new_quantity > product.stock:
            raise StockNotSufficient(product.stock)

        if existing:
            existing.quantity = new_quantity
            item = await CartRepository.save(db, existing)
        else:
            item = await CartRepository.save(
                db, CartItem(user_id=user_id, product_id=data.product_id, quantity=data.quantity)
            )
        logger.info("cart_item_saved", user_id=user_id, product_id=data.product_id, quantity=new_quantity)
        return item, existing is not None

    @staticmethod
    async def get_cart(db: AsyncSession, user_id: str) -> CartResponse:
        items = await CartRepository.get_items(db, user_id)
        total_price = sum((item.product.price * item.quantity for item in items), Decimal("0"))
        return CartResponse(
            items=items,
            summary=CartSummary(
                total_items=len(items),
                total_quantity=sum(item.quantity for item in items),
                total_price=total_price,
            ),
        )

    @staticmethod
    async def update_item_quantity(db: AsyncSession, user_id: str, item_id: int, data: CartItemUpdate) -> CartItem:
        item = await CartRepository.get_item(db, user_id, item_id)
        if not item:
            raise CartItemNotFound()
        if data.quantity > item.product.stock:
            raise StockNotSufficient(item.product.stock)

        item.quantity = data.quantity
        return await CartRepository.save(db, item)

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: str, item_id: int) -> None:
        item = await CartRepository.get_item(db, user_id, item_id)
        if not item:
            raise CartItemNotFound()
        await CartRepository.remove_item(db, item)

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str) -> None:
        await CartRepository.clear_cart(db, user_id)
