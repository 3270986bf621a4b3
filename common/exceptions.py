"""
AHSO Store - Custom Exceptions
================================
Business-level exceptions that are converted to JSON HTTP responses
by the application exception handler registered in main.py.
"""

from typing import Optional

from fastapi import status


class AppError(Exception):
    """Base exception for all business logic errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"

    def __init__(self, message: str = "Request could not be processed.", code: Optional[str] = None, **extra):
        self.message = message
        if code:
            self.code = code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.extra}


class InvalidInputError(AppError):
    """Raised for malformed or incomplete input."""
    code = "INVALID_INPUT"


class AuthenticationError(AppError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    """Raised when the caller lacks permission or does not own the resource."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    """Raised when a requested resource doesn't exist."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(AppError):
    """Raised for unique constraint violations at the business level."""
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class CartEmptyError(AppError):
    """Raised when checkout is attempted on a cart without lines."""
    code = "CART_EMPTY"

    def __init__(self):
        super().__init__("Cart is empty.")


class InsufficientStockError(AppError):
    """Raised when a requested quantity exceeds available stock."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, item_id: Optional[int] = None, sku: str = ""):
        msg = f"Insufficient stock for {sku}" if sku else "Insufficient stock."
        super().__init__(msg, item_id=item_id, sku=sku or None, available=max(0, int(available)))
