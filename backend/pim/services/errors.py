from typing import Any, Dict, Optional


class CatalogException(Exception):
    """Base for every error the type/composition/variant services raise.

    `details` carries the offending identifiers (product id, component id,
    axis code, sku) so callers can point at the bad field.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(CatalogException):
    pass


class AlreadyExists(CatalogException):
    pass


class InvalidOperation(CatalogException):
    pass


class StockLockTimeout(CatalogException):
    pass


def product_not_found(product_id: int) -> NotFound:
    return NotFound(f"Product {product_id} not found", {"product_id": product_id})
