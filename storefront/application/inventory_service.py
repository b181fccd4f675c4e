import logging
from typing import List

from storefront.domain.entities import STOCK_OPERATIONS, Product
from storefront.domain.errors import ValidationError
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)


class InventoryService:
    """Manual stock corrections outside of checkout."""

    def __init__(self, uow: IUnitOfWork, low_stock_threshold: int = 5):
        self.uow = uow
        self.low_stock_threshold = low_stock_threshold

    def adjust_stock(self, product_id: int, quantity: int, operation: str) -> Product:
        if operation not in STOCK_OPERATIONS:
            raise ValidationError("Invalid operation. Must be: add, subtract, or set")
        if quantity < 0:
            raise ValidationError("Quantity must not be negative")

        product = self.uow.run([lambda repo, _: repo.adjust_stock(product_id, quantity, operation)])
        if product is None:
            raise ValidationError(f"Failed to update stock: product with ID {product_id} not found")
        logger.info(f"Stock {operation} {quantity} on product {product_id}: now {product.stock}")
        return product

    def low_stock(self) -> List[Product]:
        return self.uow.run([lambda repo, _: repo.list_low_stock_products(self.low_stock_threshold)])
