"""
Checkout errors.

Anything raised inside the pipeline is a CheckoutError. The HTTP layer maps
`code` to a status; everything else becomes INTERNAL_ERROR.

    CheckoutError
    ├── RequestShapeError       400  field-path keyed errors
    ├── EmptyOrderError         400  every cart line was dropped
    ├── IdentityError           401  no session and no valid guest block
    ├── SecurityError           403  CSRF/session mismatch
    ├── InsufficientStockError  409  conditional stock update matched no row
    └── InfrastructureError     500  database / catalog store failures
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base error for the checkout pipeline."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class RequestShapeError(CheckoutError):
    """Malformed JSON or schema violations."""

    def __init__(self, field_errors: dict[str, str], message: str = "Invalid order data") -> None:
        super().__init__("INVALID_REQUEST", message)
        self.field_errors = field_errors


class EmptyOrderError(RequestShapeError):
    """No cart line survived catalog resolution."""

    def __init__(self) -> None:
        super().__init__({"items": "No purchasable items in cart"}, "Nothing to order")
        self.code = "EMPTY_ORDER"


class IdentityError(CheckoutError):
    def __init__(self) -> None:
        super().__init__(
            "AUTHENTICATION_REQUIRED",
            "Authentication required or guest information missing",
        )


class SecurityError(CheckoutError):
    def __init__(self, reason: str = "CSRF_VALIDATION_FAILED") -> None:
        super().__init__(reason, "Security validation failed")


class InsufficientStockError(CheckoutError):
    """Raised inside the order transaction; rolls the whole order back."""

    def __init__(self, product_id: str, requested: int) -> None:
        super().__init__(
            "INSUFFICIENT_STOCK",
            f"Product {product_id}: not enough stock for {requested}",
        )
        self.product_id = product_id
        self.requested = requested


class InfrastructureError(CheckoutError):
    """Wraps unexpected failures. `message` never reaches the client."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__("INTERNAL_ERROR", message)
        self.cause = cause


__all__ = (
    "CheckoutError",
    "RequestShapeError",
    "EmptyOrderError",
    "IdentityError",
    "SecurityError",
    "InsufficientStockError",
    "InfrastructureError",
)
