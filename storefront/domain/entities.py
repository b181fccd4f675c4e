"""Plain domain values passed between repositories, transaction steps and the API.

Repositories map ORM rows onto these so the order flow never touches a live
session object, and the in-memory store can hold them directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

PHYSICAL = "physical"
VOUCHER = "voucher"

PERCENTAGE = "percentage"
FIXED = "fixed"

ORDER_STATUSES = ("pending", "processing", "completed", "cancelled")
STOCK_OPERATIONS = ("add", "subtract", "set")


@dataclass
class Category:
    id: int | None
    name: str
    slug: str
    icon: str | None = None
    display_order: int = 0
    product_count: int = 0  # active products, filled in by listings


@dataclass
class Product:
    id: int | None
    name: str
    price: Decimal
    stock: int = 0
    type: str = PHYSICAL
    is_active: bool = True
    min_stock: int | None = None
    description: str | None = None
    category_id: int | None = None
    slug: str | None = None

    @property
    def is_physical(self) -> bool:
        return self.type == PHYSICAL


@dataclass
class PromoCode:
    id: int
    code: str
    discount_type: str  # percentage | fixed
    discount_value: Decimal
    valid_from: datetime
    min_purchase: Decimal = Decimal("0")
    max_discount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    valid_until: datetime | None = None
    is_active: bool = True
    description: str | None = None


@dataclass
class Customer:
    id: int
    phone_number: str
    order_count: int = 0
    last_order_date: datetime | None = None
    created_at: datetime | None = None


@dataclass
class OrderItem:
    product_id: int
    product_name: str
    product_price: Decimal
    quantity: int
    subtotal: Decimal
    id: int | None = None
    order_id: int | None = None


@dataclass
class Order:
    order_number: str
    customer_name: str
    customer_phone: str
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    status: str = "pending"
    customer_email: str | None = None
    customer_id: int | None = None
    promo_code: str | None = None
    notes: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItem] = field(default_factory=list)


@dataclass
class StoreSettings:
    store_name: str
    admin_phone: str
    slogan: str | None = None
    logo_filename: str | None = None
    id: int | None = None
