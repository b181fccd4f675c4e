import copy
import itertools
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from storefront.domain import entities
from storefront.domain.errors import DuplicateOrderNumberError
from storefront.domain.pricing import as_utc
from storefront.interfaces.IStoreRepository import IStoreRepository
from storefront.interfaces.IUnitOfWork import IUnitOfWork


@dataclass
class _Tables:
    categories: Dict[int, entities.Category] = field(default_factory=dict)
    products: Dict[int, entities.Product] = field(default_factory=dict)
    promo_codes: Dict[int, entities.PromoCode] = field(default_factory=dict)
    customers: Dict[int, entities.Customer] = field(default_factory=dict)
    orders: Dict[int, entities.Order] = field(default_factory=dict)
    settings: Optional[entities.StoreSettings] = None


class InMemoryStoreRepository(IStoreRepository):
    """Dict-backed IStoreRepository for tests and local runs without Postgres.

    Returned values are copies, so callers can't reach into stored state.
    """

    def __init__(self):
        self.tables = _Tables()
        self._ids = itertools.count(1)

    # --- Seeding (outside any unit of work) ---

    def seed_product(self, product: entities.Product) -> entities.Product:
        self.tables.products[product.id] = copy.deepcopy(product)
        return product

    def seed_category(self, category: entities.Category) -> entities.Category:
        self.tables.categories[category.id] = copy.deepcopy(category)
        return category

    def seed_promo_code(self, promo: entities.PromoCode) -> entities.PromoCode:
        self.tables.promo_codes[promo.id] = copy.deepcopy(promo)
        return promo

    # --- Products ---

    def get_active_product(self, product_id: int, lock: bool = False) -> Optional[entities.Product]:
        product = self.tables.products.get(product_id)
        if product is None or not product.is_active:
            return None
        return copy.deepcopy(product)

    def decrement_stock(self, product_id: int, quantity: int) -> None:
        self.tables.products[product_id].stock -= quantity

    def adjust_stock(self, product_id: int, quantity: int, operation: str) -> Optional[entities.Product]:
        product = self.tables.products.get(product_id)
        if product is None:
            return None
        if operation == "add":
            product.stock += quantity
        elif operation == "subtract":
            product.stock = max(0, product.stock - quantity)
        else:
            product.stock = quantity
        return copy.deepcopy(product)

    def list_low_stock_products(self, default_threshold: int) -> List[entities.Product]:
        low = [
            p for p in self.tables.products.values()
            if p.is_active and p.is_physical
            and (p.stock == 0 or p.stock <= (p.min_stock if p.min_stock is not None else default_threshold))
        ]
        low.sort(key=lambda p: (p.stock, p.name))
        return copy.deepcopy(low)

    # --- Catalog ---

    def get_product(self, product_id: int) -> Optional[entities.Product]:
        return copy.deepcopy(self.tables.products.get(product_id))

    def find_product_by_slug(self, slug: str) -> Optional[entities.Product]:
        for product in self.tables.products.values():
            if product.slug == slug:
                return copy.deepcopy(product)
        return None

    def list_products(
        self,
        category_slug: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[entities.Product], int]:
        category_id = None
        if category_slug:
            category = self.find_category_by_slug(category_slug)
            if category is None:
                return [], 0
            category_id = category.id

        def matches(p: entities.Product) -> bool:
            if not p.is_active:
                return False
            if category_id is not None and p.category_id != category_id:
                return False
            if search:
                needle = search.lower()
                return needle in p.name.lower() or needle in (p.description or "").lower()
            return True

        found = sorted((p for p in self.tables.products.values() if matches(p)), key=lambda p: p.id, reverse=True)
        return copy.deepcopy(found[offset:offset + limit]), len(found)

    def add_product(self, product: entities.Product) -> entities.Product:
        stored = copy.deepcopy(product)
        stored.id = max(self.tables.products, default=0) + 1
        self.tables.products[stored.id] = stored
        return copy.deepcopy(stored)

    def update_product(self, product: entities.Product) -> Optional[entities.Product]:
        current = self.tables.products.get(product.id)
        if current is None:
            return None
        stored = copy.deepcopy(product)
        stored.stock = current.stock
        self.tables.products[stored.id] = stored
        return copy.deepcopy(stored)

    def list_categories(self) -> List[entities.Category]:
        found = copy.deepcopy(list(self.tables.categories.values()))
        for category in found:
            category.product_count = sum(
                1 for p in self.tables.products.values() if p.category_id == category.id and p.is_active
            )
        found.sort(key=lambda c: (c.display_order, c.name))
        return found

    def get_category(self, category_id: int) -> Optional[entities.Category]:
        return copy.deepcopy(self.tables.categories.get(category_id))

    def find_category_by_slug(self, slug: str) -> Optional[entities.Category]:
        for category in self.tables.categories.values():
            if category.slug == slug:
                return copy.deepcopy(category)
        return None

    def add_category(self, category: entities.Category) -> entities.Category:
        stored = copy.deepcopy(category)
        stored.id = max(self.tables.categories, default=0) + 1
        stored.product_count = 0
        self.tables.categories[stored.id] = stored
        return copy.deepcopy(stored)

    def update_category(self, category: entities.Category) -> Optional[entities.Category]:
        if category.id not in self.tables.categories:
            return None
        stored = copy.deepcopy(category)
        stored.product_count = 0
        self.tables.categories[stored.id] = stored
        return copy.deepcopy(stored)

    def delete_category(self, category_id: int) -> bool:
        return self.tables.categories.pop(category_id, None) is not None

    def count_category_products(self, category_id: int) -> int:
        return sum(1 for p in self.tables.products.values() if p.category_id == category_id)

    # --- Promo codes ---

    def find_promo_code(self, code: str, lock: bool = False) -> Optional[entities.PromoCode]:
        wanted = code.strip().upper()
        for promo in self.tables.promo_codes.values():
            if promo.code.upper() == wanted:
                return copy.deepcopy(promo)
        return None

    def increment_promo_usage(self, promo_id: int) -> None:
        self.tables.promo_codes[promo_id].usage_count += 1

    # --- Customers ---

    def find_customer_by_phone(self, phone_number: str, lock: bool = False) -> Optional[entities.Customer]:
        for customer in self.tables.customers.values():
            if customer.phone_number == phone_number:
                return copy.deepcopy(customer)
        return None

    def add_customer(self, phone_number: str, created_at: datetime) -> entities.Customer:
        existing = self.find_customer_by_phone(phone_number)
        if existing is not None:
            return existing
        customer = entities.Customer(id=next(self._ids), phone_number=phone_number, created_at=created_at)
        self.tables.customers[customer.id] = customer
        return copy.deepcopy(customer)

    def record_customer_order(self, customer_id: int, ordered_at: datetime) -> entities.Customer:
        customer = self.tables.customers[customer_id]
        customer.order_count += 1
        customer.last_order_date = ordered_at
        return copy.deepcopy(customer)

    def list_customers(self, search: Optional[str], limit: int, offset: int) -> Tuple[List[entities.Customer], int]:
        found = [
            c for c in self.tables.customers.values()
            if not search or search.lower() in c.phone_number.lower()
        ]
        found.sort(key=lambda c: (_epoch(c.last_order_date), c.id), reverse=True)
        return copy.deepcopy(found[offset:offset + limit]), len(found)

    # --- Orders ---

    def add_order(self, order: entities.Order, items: List[entities.OrderItem]) -> entities.Order:
        if any(o.order_number == order.order_number for o in self.tables.orders.values()):
            raise DuplicateOrderNumberError(order.order_number)

        stored = copy.deepcopy(order)
        stored.id = next(self._ids)
        stored.updated_at = stored.created_at
        stored.items = []
        for item in items:
            line = copy.deepcopy(item)
            line.id = next(self._ids)
            line.order_id = stored.id
            stored.items.append(line)
        self.tables.orders[stored.id] = stored
        return copy.deepcopy(stored)

    def get_order(self, order_id: int) -> Optional[entities.Order]:
        order = self.tables.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    def list_orders(
        self,
        status: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[entities.Order], int]:
        def matches(o: entities.Order) -> bool:
            if status and o.status != status:
                return False
            if search:
                needle = search.lower()
                return any(needle in value.lower() for value in (o.order_number, o.customer_name, o.customer_phone))
            return True

        found = [o for o in self.tables.orders.values() if matches(o)]
        found.sort(key=lambda o: (_epoch(o.created_at), o.id), reverse=True)
        page = copy.deepcopy(found[offset:offset + limit])
        for o in page:
            o.items = []
        return page, len(found)

    def update_order_status(
        self, order_id: int, status: str, notes: Optional[str], updated_at: datetime
    ) -> Optional[entities.Order]:
        order = self.tables.orders.get(order_id)
        if order is None:
            return None
        order.status = status
        if notes is not None:
            order.notes = notes
        order.updated_at = updated_at
        updated = copy.deepcopy(order)
        updated.items = []
        return updated

    # --- Store settings ---

    def get_store_settings(self) -> Optional[entities.StoreSettings]:
        return copy.deepcopy(self.tables.settings)

    def save_store_settings(self, store_settings: entities.StoreSettings) -> entities.StoreSettings:
        stored = copy.deepcopy(store_settings)
        if stored.id is None:
            stored.id = next(self._ids)
        self.tables.settings = stored
        return copy.deepcopy(stored)


class InMemoryUnitOfWork(IUnitOfWork):
    """Snapshots the tables on ``begin()`` and restores them if the block raises."""

    def __init__(self, repo: InMemoryStoreRepository | None = None):
        self.repo = repo or InMemoryStoreRepository()
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def begin(self) -> Iterator[IStoreRepository]:
        snapshot = copy.deepcopy(self.repo.tables)
        try:
            yield self.repo
        except Exception:
            self.repo.tables = snapshot
            self.rollbacks += 1
            raise
        self.commits += 1


def _epoch(moment: Optional[datetime]) -> float:
    if moment is None:
        return float("-inf")
    return as_utc(moment).timestamp()
