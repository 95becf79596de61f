from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)

class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=1)

class CartProduct(BaseModel):
    id: int
    name: str
    price: Decimal
    stock: int

    class Config:
        from_attributes = True

class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    product: CartProduct

    class Config:
        from_attributes = True

class CartItemMessage(BaseModel):
    message: str
    cart_item: CartItemResponse

class CartSummary(BaseModel):
    total_items: int
    total_quantity: int
    total_price: Decimal

class CartResponse(BaseModel):
    items: List[CartItemResponse] = []
    summary: CartSummary
