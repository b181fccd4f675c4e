import logging

from fastapi import APIRouter, Request

from storefront.domain.schemas import (
    ApiResponse,
    CreateOrderRequest,
    OrderItemOut,
    OrderOut,
    PlacedOrderOut,
    PromoValidateRequest,
    PromoValidationOut,
    StoreInfoOut,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


@router.post("/orders", response_model=ApiResponse[PlacedOrderOut])
def create_order(payload: CreateOrderRequest, request: Request):
    """
    Checkout. Creates the order atomically and returns the WhatsApp link the
    storefront opens to hand the order over to the store.
    """
    logger.info(f"📨 New order from {payload.customer_phone}: {len(payload.items)} line(s)")
    placed = request.app.state.order_service.place_order(payload)

    return ApiResponse[PlacedOrderOut](
        data=PlacedOrderOut(
            order=OrderOut.model_validate(placed.order),
            items=[OrderItemOut.model_validate(item) for item in placed.order.items],
            whatsapp_url=placed.whatsapp_url,
        )
    )


@router.post("/promo/validate", response_model=ApiResponse[PromoValidationOut])
def validate_promo(payload: PromoValidateRequest, request: Request):
    validation = request.app.state.promo_service.validate(payload.code, payload.total_amount)
    return ApiResponse[PromoValidationOut](
        success=validation.is_valid,
        data=PromoValidationOut(
            discount_amount=validation.discount_amount,
            message=validation.message,
            promo_id=validation.promo_id,
        ),
    )


@router.get("/store/settings", response_model=ApiResponse[StoreInfoOut])
def store_settings(request: Request):
    current = request.app.state.store_service.get_settings()
    return ApiResponse[StoreInfoOut](data=StoreInfoOut.from_settings(current))
