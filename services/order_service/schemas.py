from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .models import OrderStatus

class APIModel(BaseModel):
    """Order API payloads are camelCase on the wire, snake_case in Python."""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

class OrderCreatedResponse(APIModel):
    message: str
    order_id: int
    payment_session_token: str
    redirect_url: str

class OrderItemResponse(APIModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: Decimal

class OrderResponse(APIModel):
    id: int
    user_id: str
    total_price: Decimal
    status: OrderStatus
    payment_type: Optional[str] = None
    gateway_order_id: Optional[str] = None
    payment_redirect_url: Optional[str] = None
    created_at: datetime
    items: List[OrderItemResponse] = []

class PageMeta(APIModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

class OrderPage(APIModel):
    data: List[OrderResponse]
    meta: PageMeta

class OrderStatusUpdate(APIModel):
    status: OrderStatus

class OrderStatusUpdated(APIModel):
    message: str
    order: OrderResponse

class MessageResponse(APIModel):
    message: str
