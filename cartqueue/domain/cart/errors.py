from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    TRANSIENT = "transient"
    PERMANENT_MESSAGE = "permanent_message"


class ErrorKind(str, Enum):
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_REQUEST = "INVALID_REQUEST"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CART_ITEM_NOT_FOUND = "CART_ITEM_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    FORBIDDEN = "FORBIDDEN"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    MALFORMED_MESSAGE = "MALFORMED_MESSAGE"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.category]


_CATEGORIES = {
    ErrorKind.INVALID_QUANTITY: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_REQUEST: ErrorCategory.VALIDATION,
    ErrorKind.INSUFFICIENT_STOCK: ErrorCategory.VALIDATION,
    ErrorKind.PRODUCT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.CART_ITEM_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.FORBIDDEN: ErrorCategory.FORBIDDEN,
    ErrorKind.PUBLISH_FAILED: ErrorCategory.TRANSIENT,
    ErrorKind.STORE_UNAVAILABLE: ErrorCategory.TRANSIENT,
    ErrorKind.MALFORMED_MESSAGE: ErrorCategory.PERMANENT_MESSAGE,
}

_HTTP_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.FORBIDDEN: 403,
    ErrorCategory.TRANSIENT: 503,
    ErrorCategory.PERMANENT_MESSAGE: 400,
}


class CartServiceError(Exception):
    """
    Single error type raised by the cart core.

    Callers branch on `kind` (or `kind.category`) instead of matching
    exception classes or messages. `cause` keeps the underlying
    infrastructure exception for logging; it is never shown to API clients.
    """

    def __init__(self, kind: ErrorKind, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @property
    def is_transient(self) -> bool:
        return self.category is ErrorCategory.TRANSIENT

    def __repr__(self) -> str:
        return f"CartServiceError(kind={self.kind.value!r}, message={self.message!r})"


def invalid_quantity(quantity: int) -> CartServiceError:
    return CartServiceError(ErrorKind.INVALID_QUANTITY, f"quantity must be a positive integer in range, got {quantity}")


def product_not_found(product_id: int, cause: BaseException | None = None) -> CartServiceError:
    return CartServiceError(ErrorKind.PRODUCT_NOT_FOUND, f"product {product_id} not found", cause)


def insufficient_stock(product_id: int, stock: int, quantity: int) -> CartServiceError:
    return CartServiceError(
        ErrorKind.INSUFFICIENT_STOCK,
        f"insufficient stock for product {product_id}: requested {quantity}, available {stock}",
    )


def cart_item_not_found(cart_item_id: int) -> CartServiceError:
    return CartServiceError(ErrorKind.CART_ITEM_NOT_FOUND, f"cart item {cart_item_id} not found")
