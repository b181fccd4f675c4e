"""Exceptions raised by the storefront services."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when required input is missing or malformed."""

    def __init__(self, message: str = "Missing required fields"):
        super().__init__(message)


class ProductNotFoundError(StorefrontError):
    """Raised when a product doesn't exist or is no longer active."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class InsufficientStockError(StorefrontError):
    """Raised when a physical product can't cover the requested quantity."""

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_name} "
            f"(requested {requested}, available {available})"
        )


class DuplicateOrderNumberError(StorefrontError):
    """Raised when a generated order number collides with an existing one."""

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order number already exists: {order_number}")


class PersistenceError(StorefrontError):
    """Raised when the database fails underneath a unit of work."""

    def __init__(self, reason: str = "Failed to save changes to the database"):
        super().__init__(reason)


class NotFoundError(StorefrontError):
    """Raised when an admin or catalog lookup by id finds nothing."""

    def __init__(self, what: str = "Record"):
        super().__init__(f"{what} not found")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Order")


class CategoryNotFoundError(NotFoundError):
    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__("Category")


class AdminAuthError(StorefrontError):
    def __init__(self):
        super().__init__("Unauthorized")
