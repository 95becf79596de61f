from shared.errors import AppError


class ProductNotFound(AppError):
    status_code = 404
    code = "product_not_found"
    message = "Product not found"


class CartItemNotFound(AppError):
    status_code = 404
    code = "cart_item_not_found"
    message = "Cart item not found"


class StockNotSufficient(AppError):
    code = "stock_not_sufficient"

    def __init__(self, available: int):
        super().__init__(f"Stock not sufficient. Available stock: {available}", available=available)
