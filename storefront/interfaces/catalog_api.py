from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from storefront.domain.schemas import (
    ApiResponse,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    OffsetPagination,
    ProductCreate,
    ProductOut,
    ProductPage,
    ProductUpdate,
)
from storefront.interfaces.admin_api import require_admin

# Registered after admin_api so /api/products/stock is matched before /api/products/{product_id}
router = APIRouter(prefix="/api")
admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


# --- Storefront ---

@router.get("/products", response_model=ApiResponse[ProductPage])
def list_products(
    request: Request,
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    result = request.app.state.catalog_service.list_products(category, search, limit, offset)
    return ApiResponse[ProductPage](
        data=ProductPage(
            products=[ProductOut.model_validate(p) for p in result["products"]],
            pagination=OffsetPagination(**result["pagination"]),
        )
    )


@router.get("/products/{product_id}", response_model=ApiResponse[ProductOut])
def get_product(product_id: int, request: Request):
    product = request.app.state.catalog_service.get_product(product_id)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


@router.get("/categories", response_model=ApiResponse[List[CategoryOut]])
def list_categories(request: Request):
    categories = request.app.state.catalog_service.list_categories()
    return ApiResponse[List[CategoryOut]](data=[CategoryOut.model_validate(c) for c in categories])


# --- Admin: products ---

@admin_router.post("/products", response_model=ApiResponse[ProductOut])
def create_product(payload: ProductCreate, request: Request):
    product = request.app.state.catalog_service.create_product(payload)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


@admin_router.get("/products/{product_id}", response_model=ApiResponse[ProductOut])
def admin_get_product(product_id: int, request: Request):
    product = request.app.state.catalog_service.get_product(product_id, include_inactive=True)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


@admin_router.put("/products/{product_id}", response_model=ApiResponse[ProductOut])
def update_product(product_id: int, payload: ProductUpdate, request: Request):
    product = request.app.state.catalog_service.update_product(product_id, payload)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


@admin_router.delete("/products/{product_id}", response_model=ApiResponse[ProductOut])
def deactivate_product(product_id: int, request: Request):
    product = request.app.state.catalog_service.deactivate_product(product_id)
    return ApiResponse[ProductOut](data=ProductOut.model_validate(product))


# --- Admin: categories ---

@admin_router.post("/categories", response_model=ApiResponse[CategoryOut])
def create_category(payload: CategoryCreate, request: Request):
    category = request.app.state.catalog_service.create_category(payload)
    return ApiResponse[CategoryOut](data=CategoryOut.model_validate(category))


@admin_router.put("/categories/{category_id}", response_model=ApiResponse[CategoryOut])
def update_category(category_id: int, payload: CategoryUpdate, request: Request):
    category = request.app.state.catalog_service.update_category(category_id, payload)
    return ApiResponse[CategoryOut](data=CategoryOut.model_validate(category))


@admin_router.delete("/categories/{category_id}", response_model=ApiResponse[Optional[int]])
def delete_category(category_id: int, request: Request):
    request.app.state.catalog_service.delete_category(category_id)
    return ApiResponse[Optional[int]](data=category_id)
