import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from storefront.domain.errors import AdminAuthError
from storefront.domain.schemas import (
    ApiResponse,
    CustomerOut,
    CustomerPage,
    OrderDetailOut,
    OrderOut,
    OrderPage,
    OrderStatusUpdate,
    Pagination,
    ProductOut,
    StockAdjustRequest,
    StoreInfoOut,
    StoreSettingsUpdate,
)

logger = logging.getLogger(__name__)


def require_admin(
    request: Request,
    x_admin_key: Optional[str] = Header(None),
    key: Optional[str] = Query(None, include_in_schema=False),
):
    """Gate for back-office routes: X-Admin-Key header (or ?key= for the HTML dashboard)."""
    expected = request.app.state.config.ADMIN_API_KEY
    supplied = x_admin_key or key
    if not expected or not supplied or not hmac.compare_digest(supplied, expected):
        logger.warning(f"🚫 Rejected admin request to {request.url.path}")
        raise AdminAuthError()


router = APIRouter(prefix="/api", dependencies=[Depends(require_admin)])


# --- Orders ---

@router.get("/admin/orders", response_model=ApiResponse[OrderPage])
def list_orders(
    request: Request,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    result = request.app.state.order_service.list_orders(status, search, page, limit)
    return ApiResponse[OrderPage](
        data=OrderPage(
            orders=[OrderOut.model_validate(o) for o in result["orders"]],
            pagination=Pagination(**result["pagination"]),
        )
    )


@router.get("/admin/orders/{order_id}", response_model=ApiResponse[OrderDetailOut])
def get_order(order_id: int, request: Request):
    order = request.app.state.order_service.get_order(order_id)
    return ApiResponse[OrderDetailOut](data=OrderDetailOut.model_validate(order))


@router.patch("/admin/orders/{order_id}", response_model=ApiResponse[OrderOut])
def update_order(order_id: int, payload: OrderStatusUpdate, request: Request):
    order = request.app.state.order_service.update_status(order_id, payload.status, payload.notes)
    return ApiResponse[OrderOut](data=OrderOut.model_validate(order))


# --- Stock ---

@router.get("/products/stock", response_model=ApiResponse[List[ProductOut]])
def low_stock_products(request: Request):
    products = request.app.state.inventory_service.low_stock()
    return ApiResponse[List[ProductOut]](data=[ProductOut.model_validate(p) for p in products])


@router.put("/products/stock", response_model=ApiResponse[ProductOut])
def adjust_stock(payload: StockAdjustRequest, request: Request):
    product = request.app.state.inventory_service.adjust_stock(
        payload.product_id, payload.quantity, payload.operation
    )
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


# --- Customers ---

@router.get("/admin/customers", response_model=ApiResponse[CustomerPage])
def list_customers(
    request: Request,
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    customers, total = request.app.state.store_service.list_customers(search, limit, offset)
    return ApiResponse[CustomerPage](
        data=CustomerPage(customers=[CustomerOut.model_validate(c) for c in customers], total=total)
    )


# --- Settings ---

@router.put("/admin/settings", response_model=ApiResponse[StoreInfoOut])
def update_settings(payload: StoreSettingsUpdate, request: Request):
    current = request.app.state.store_service.update_settings(payload)
    return ApiResponse[StoreInfoOut](data=StoreInfoOut.from_settings(current))
