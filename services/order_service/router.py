"""
Order endpoints.

`POST /notification` is the gateway webhook: it is public by design and its
only trust boundary is the signature check plus the gateway status query in
PaymentService. Every other route requires a bearer token. Mutating routes
use IdempotentRoute, so clients may retry them with an Idempotency-Key.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import get_db
from shared.idempotency import IdempotentRoute
from shared.security import limiter
from shared.security.dependencies import Principal, Role, get_current_principal, require_role
from services.payment_service.gateway import MidtransGateway, get_gateway
from services.payment_service.schemas import MidtransNotification, NotificationResult
from services.payment_service.service import PaymentService

from .models import OrderStatus
from .schemas import (
    MessageResponse,
    OrderCreatedResponse,
    OrderPage,
    OrderResponse,
    OrderStatusUpdate,
    OrderStatusUpdated,
)
from .service import OrderService

router = APIRouter(route_class=IdempotentRoute, tags=["Orders"])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
async def create_order(
    request: Request,                          # REQUIRED: slowapi needs this to check IP/Headers
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    gateway: MidtransGateway = Depends(get_gateway),
):
    return await OrderService.create_order(db, gateway, principal.user_id)


@router.post("/notification", response_model=NotificationResult)
async def payment_notification(
    notification: MidtransNotification,
    db: AsyncSession = Depends(get_db),
    gateway: MidtransGateway = Depends(get_gateway),
):
    return await PaymentService.handle_notification(db, gateway, notification)


@router.get("/my-orders", response_model=OrderPage)
async def get_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_my_orders(db, principal.user_id, page, limit)


@router.get("/seller/orders", response_model=OrderPage)
async def get_seller_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    status: Optional[OrderStatus] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    require_role(principal, {Role.SELLER})
    return await OrderService.get_seller_orders(db, principal.user_id, status, page, limit)


@router.get("/", response_model=OrderPage)
async def get_all_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    status: Optional[OrderStatus] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    require_role(principal, {Role.ADMIN})
    return await OrderService.get_all_orders(db, status, page, limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_order_details(db, principal, order_id)


@router.post("/{order_id}/payment-session", response_model=OrderCreatedResponse)
async def retry_payment_session(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    gateway: MidtransGateway = Depends(get_gateway),
):
    return await OrderService.retry_payment_session(db, gateway, principal.user_id, order_id)


@router.patch("/{order_id}/status", response_model=OrderStatusUpdated)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    require_role(principal, {Role.ADMIN})
    return await OrderService.update_order_status(db, order_id, payload.status)


@router.delete("/{order_id}", response_model=MessageResponse)
async def cancel_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await OrderService.cancel_order(db, principal.user_id, order_id)
    return MessageResponse(message="Order successfully canceled. Stock returned.")
