"""Order domain errors raised by the builder, lifecycle and query services."""
from shared.errors import AppError


class CartEmpty(AppError):
    code = "cart_empty"
    message = "Cart is empty"


class CartTooLarge(AppError):
    code = "cart_too_large"

    def __init__(self, limit: int):
        super().__init__(f"Too many items in cart (Max {limit})", limit=limit)


class InsufficientStock(AppError):
    code = "insufficient_stock"

    def __init__(self, product_name: str):
        super().__init__(f"Product '{product_name}' is out of stock", productName=product_name)


class PaymentSessionFailed(AppError):
    """The order exists and holds its stock; only the gateway session is missing."""
    status_code = 502
    code = "payment_session_failed"

    def __init__(self, order_id: int):
        super().__init__("Order created but failed to generate payment token", orderId=order_id)


class OrderNotFound(AppError):
    status_code = 404
    code = "order_not_found"
    message = "Order not found"


class OrderAccessDenied(AppError):
    status_code = 403
    code = "order_access_denied"
    message = "You are not allowed to access this order"


class CannotCancel(AppError):
    code = "cannot_cancel"
    message = "Order cannot be canceled"


class OrderNotPayable(AppError):
    code = "order_not_payable"
    message = "Only pending orders can open a payment session"
