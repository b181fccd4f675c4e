from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from storefront.domain.entities import Category, Customer, Order, OrderItem, Product, PromoCode, StoreSettings


class IStoreRepository(ABC):
    """Data access used inside a single unit of work.

    Every call runs in the transaction opened by the owning IUnitOfWork.
    """

    # --- Products ---
    @abstractmethod
    def get_active_product(self, product_id: int, lock: bool = False) -> Optional[Product]:
        pass

    @abstractmethod
    def decrement_stock(self, product_id: int, quantity: int) -> None:
        pass

    @abstractmethod
    def adjust_stock(self, product_id: int, quantity: int, operation: str) -> Optional[Product]:
        """Apply add / subtract (floored at 0) / set. Returns None for an unknown product."""
        pass

    @abstractmethod
    def list_low_stock_products(self, default_threshold: int) -> List[Product]:
        pass

    # --- Catalog ---
    @abstractmethod
    def get_product(self, product_id: int) -> Optional[Product]:
        """Any product, active or not."""
        pass

    @abstractmethod
    def find_product_by_slug(self, slug: str) -> Optional[Product]:
        pass

    @abstractmethod
    def list_products(
        self,
        category_slug: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[Product], int]:
        """Active products, newest first, with the total matching count."""
        pass

    @abstractmethod
    def add_product(self, product: Product) -> Product:
        pass

    @abstractmethod
    def update_product(self, product: Product) -> Optional[Product]:
        """Overwrite every catalog field except stock. Returns None for an unknown product."""
        pass

    @abstractmethod
    def list_categories(self) -> List[Category]:
        """All categories with their active product counts, by display order then name."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def find_category_by_slug(self, slug: str) -> Optional[Category]:
        pass

    @abstractmethod
    def add_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def update_category(self, category: Category) -> Optional[Category]:
        pass

    @abstractmethod
    def delete_category(self, category_id: int) -> bool:
        pass

    @abstractmethod
    def count_category_products(self, category_id: int) -> int:
        """Products of any state that still point at the category."""
        pass

    # --- Promo codes ---
    @abstractmethod
    def find_promo_code(self, code: str, lock: bool = False) -> Optional[PromoCode]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    def increment_promo_usage(self, promo_id: int) -> None:
        pass

    # --- Customers ---
    @abstractmethod
    def find_customer_by_phone(self, phone_number: str, lock: bool = False) -> Optional[Customer]:
        pass

    @abstractmethod
    def add_customer(self, phone_number: str, created_at: datetime) -> Customer:
        """Insert the customer, or return the existing row if the phone was taken meanwhile."""
        pass

    @abstractmethod
    def record_customer_order(self, customer_id: int, ordered_at: datetime) -> Customer:
        pass

    @abstractmethod
    def list_customers(self, search: Optional[str], limit: int, offset: int) -> Tuple[List[Customer], int]:
        pass

    # --- Orders ---
    @abstractmethod
    def add_order(self, order: Order, items: List[OrderItem]) -> Order:
        """Insert the order and its items. Raises DuplicateOrderNumberError on collision."""
        pass

    @abstractmethod
    def get_order(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    def list_orders(
        self,
        status: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[Order], int]:
        pass

    @abstractmethod
    def update_order_status(self, order_id: int, status: str, notes: Optional[str], updated_at: datetime) -> Optional[Order]:
        pass

    # --- Store settings ---
    @abstractmethod
    def get_store_settings(self) -> Optional[StoreSettings]:
        pass

    @abstractmethod
    def save_store_settings(self, store_settings: StoreSettings) -> StoreSettings:
        pass
