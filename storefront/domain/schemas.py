from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


# --- Requests ---

class OrderLineIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    # Emptiness is checked by OrderService so the error reads the same
    # whether the field is missing or blank.
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: Optional[str] = None
    items: List[OrderLineIn] = Field(default_factory=list)
    promo_code: Optional[str] = None


class PromoValidateRequest(BaseModel):
    code: Optional[str] = None
    total_amount: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("total_amount", "totalAmount")
    )


class StockAdjustRequest(BaseModel):
    product_id: int = Field(validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = Field(ge=0)
    operation: str  # add | subtract | set


class ProductCreate(BaseModel):
    name: str = ""
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    type: str = "physical"  # physical | voucher
    category_id: Optional[int] = None
    is_active: bool = True


class ProductUpdate(BaseModel):
    # Stock changes go through the stock endpoint
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    type: Optional[str] = None
    category_id: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    display_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    display_order: Optional[int] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class StoreSettingsUpdate(BaseModel):
    store_name: Optional[str] = None
    slogan: Optional[str] = None
    admin_phone: Optional[str] = None


# --- Responses ---

class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    price: Decimal
    stock: int
    min_stock: Optional[int] = None
    type: str
    is_active: bool


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    icon: Optional[str] = None
    display_order: int
    product_count: int = 0


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    product_name: str
    product_price: Decimal
    quantity: int
    subtotal: Decimal


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    customer_id: Optional[int] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str
    status: str
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    promo_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderDetailOut(OrderOut):
    items: List[OrderItemOut] = []


class PlacedOrderOut(BaseModel):
    order: OrderOut
    items: List[OrderItemOut]
    whatsapp_url: str


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone_number: str
    order_count: int
    last_order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PromoValidationOut(BaseModel):
    discount_amount: Decimal
    message: str
    promo_id: Optional[int] = None


class StoreInfoOut(BaseModel):
    name: str
    tagline: Optional[str] = None
    whatsapp_number: str
    logo: Optional[str] = None

    @classmethod
    def from_settings(cls, current) -> "StoreInfoOut":
        return cls(
            name=current.store_name,
            tagline=current.slogan,
            whatsapp_number=current.admin_phone,
            logo=f"/uploads/{current.logo_filename}" if current.logo_filename else None,
        )


class Pagination(BaseModel):
    total: int
    total_pages: int
    current_page: int
    limit: int


class OffsetPagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class ProductPage(BaseModel):
    products: List[ProductOut]
    pagination: OffsetPagination


class OrderPage(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class CustomerPage(BaseModel):
    customers: List[CustomerOut]
    total: int


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every JSON endpoint answers with: ``{success, data}``."""

    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
