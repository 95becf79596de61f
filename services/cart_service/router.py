"""
Cart endpoints. Every route acts on the authenticated caller's own cart;
the user id comes from the JWT, never from the request body.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import Principal, get_current_principal

from .schemas import CartItemCreate, CartItemMessage, CartItemUpdate, CartResponse
from .service import CartService

router = APIRouter(tags=["Cart"])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "cart", "status": "running"}


@router.post("/", response_model=CartItemMessage, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    data: CartItemCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    item, updated = await CartService.add_to_cart(db, principal.user_id, data)
    message = "Cart item updated successfully" if updated else "Product added to cart successfully"
    return {"message": message, "cart_item": item}


@router.get("/", response_model=CartResponse)
async def get_my_cart(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await CartService.get_cart(db, principal.user_id)


@router.patch("/{item_id}", response_model=CartItemMessage)
async def update_cart_item(
    item_id: int,
    data: CartItemUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    item = await CartService.update_item_quantity(db, principal.user_id, item_id, data)
    return {"message": "Cart item quantity updated successfully", "cart_item": item}


@router.delete("/{item_id}")
async def remove_cart_item(
    item_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await CartService.remove_item(db, principal.user_id, item_id)
    return {"message": "Cart item removed successfully"}


@router.delete("/")
async def clear_cart(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Deletes all items in the caller's cart."""
    await CartService.clear_cart(db, principal.user_id)
    return {"message": "Cart cleared successfully"}
