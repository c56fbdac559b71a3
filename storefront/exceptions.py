"""
Custom exceptions for the storefront cart service.
"""
from typing import Optional


class CartException(Exception):
    """Base exception for cart and catalog operations"""
    error = "Cart error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequestError(CartException):
    """Raised when identifiers are missing or malformed"""
    error = "Invalid request"


class ItemNotFoundError(CartException):
    """Raised when an item id matches no catalog"""
    error = "Item not found"

    def __init__(self, item_id: str, source: Optional[str] = None):
        self.item_id = item_id
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Item not found{where}: {item_id}")


class CartNotFoundError(CartException):
    """Raised when a user has no cart yet"""
    error = "Cart not found"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Cart not found")


class ItemNotInCartError(CartException):
    """Raised when no cart line matches the request"""
    error = "Item not in cart"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Item not in cart: {reference}")


class UnauthorizedError(CartException):
    """Raised when the caller carries no user identity"""
    error = "Unauthorized"


class StorageError(CartException):
    """Raised when the underlying Redis operation fails"""
    error = "Storage error"


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing"""
    pass
