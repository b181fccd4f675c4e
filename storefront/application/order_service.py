"""Checkout and order administration.

``place_order`` runs the checkout as one unit of work made of small steps.
Each step takes the repository and an ``OrderDraft`` and returns the next
draft, so any raise rolls back every earlier write (stock, promo usage,
customer counter).
"""

import logging
import random
import string
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from storefront.application import handoff
from storefront.application.store_service import StoreService, page_count
from storefront.domain.entities import ORDER_STATUSES, Order, OrderItem
from storefront.domain.errors import (
    InsufficientStockError,
    OrderNotFoundError,
    ProductNotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.domain.pricing import ZERO, compute_discount, line_subtotal, promo_rejection, utc_now
from storefront.domain.schemas import CreateOrderRequest
from storefront.interfaces.IStoreRepository import IStoreRepository
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: datetime) -> str:
    """ORD-<epoch millis>-<5 random chars>. The unique index on orders is the real guard."""
    suffix = "".join(random.choices(ORDER_NUMBER_ALPHABET, k=5))
    return f"ORD-{int(now.timestamp() * 1000)}-{suffix}"


@dataclass
class OrderDraft:
    request: CreateOrderRequest
    order_number: str
    placed_at: datetime
    lines: List[OrderItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    promo_code: Optional[str] = None
    customer_id: Optional[int] = None


@dataclass
class PlacedOrder:
    order: Order
    whatsapp_url: str


# --- Checkout steps ---

def validate_request(repo: IStoreRepository, draft: OrderDraft) -> OrderDraft:
    request = draft.request
    if not request.customer_name.strip() or not request.customer_phone.strip() or not request.items:
        raise ValidationError("Missing required fields")
    return draft


def reserve_items(repo: IStoreRepository, draft: OrderDraft) -> OrderDraft:
    """Price every line and take its stock, in request order."""
    lines = []
    subtotal = ZERO
    for requested in draft.request.items:
        product = repo.get_active_product(requested.product_id, lock=True)
        if product is None:
            raise ProductNotFoundError(requested.product_id)

        if product.is_physical and product.stock < requested.quantity:
            raise InsufficientStockError(product.name, product.stock, requested.quantity)

        item_subtotal = line_subtotal(product.price, requested.quantity)
        subtotal += item_subtotal
        lines.append(
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_price=product.price,
                quantity=requested.quantity,
                subtotal=item_subtotal,
            )
        )

        # Taken now so a repeated product in the same order sees the reduced stock
        if product.is_physical:
            repo.decrement_stock(product.id, requested.quantity)

    return replace(draft, lines=lines, subtotal=subtotal)


def apply_promo(repo: IStoreRepository, draft: OrderDraft) -> OrderDraft:
    """Best effort: a code that doesn't qualify leaves the discount at zero."""
    code = (draft.request.promo_code or "").strip()
    if not code:
        return draft

    promo = repo.find_promo_code(code, lock=True)
    reason = promo_rejection(promo, draft.subtotal, draft.placed_at)
    if reason is not None:
        logger.info(f"Promo code {code!r} not applied to {draft.order_number}: {reason}")
        return draft

    discount = compute_discount(promo, draft.subtotal)
    repo.increment_promo_usage(promo.id)
    return replace(draft, discount=discount, promo_code=promo.code)


def register_customer(repo: IStoreRepository, draft: OrderDraft) -> OrderDraft:
    phone = draft.request.customer_phone.strip()
    customer = repo.find_customer_by_phone(phone, lock=True)
    if customer is None:
        customer = repo.add_customer(phone, draft.placed_at)
    customer = repo.record_customer_order(customer.id, draft.placed_at)
    return replace(draft, customer_id=customer.id)


def persist_order(repo: IStoreRepository, draft: OrderDraft) -> Order:
    request = draft.request
    order = Order(
        order_number=draft.order_number,
        customer_id=draft.customer_id,
        customer_name=request.customer_name.strip(),
        customer_email=(request.customer_email or "").strip() or None,
        customer_phone=request.customer_phone.strip(),
        status="pending",
        subtotal=draft.subtotal,
        discount_amount=draft.discount,
        total_amount=draft.subtotal - draft.discount,
        promo_code=draft.promo_code,
        created_at=draft.placed_at,
    )
    return repo.add_order(order, draft.lines)


CHECKOUT_STEPS = [validate_request, reserve_items, apply_promo, register_customer, persist_order]


class OrderService:
    def __init__(
        self,
        uow: IUnitOfWork,
        store_service: StoreService,
        notifier=None,
        clock: Callable[[], datetime] = utc_now,
        order_number_factory: Callable[[datetime], str] = generate_order_number,
    ):
        self.uow = uow
        self.store_service = store_service
        self.notifier = notifier  # Optional NotificationService
        self.clock = clock
        self.order_number_factory = order_number_factory

    def place_order(self, request: CreateOrderRequest) -> PlacedOrder:
        placed_at = self.clock()
        draft = OrderDraft(
            request=request,
            order_number=self.order_number_factory(placed_at),
            placed_at=placed_at,
        )

        order = self.uow.run(CHECKOUT_STEPS, draft)
        logger.info(f"✅ Order {order.order_number} created: total={order.total_amount} items={len(order.items)}")

        # The order is committed from here on; nothing below may fail the request
        url = self._handoff_url(order)

        if self.notifier is not None:
            self.notifier.notify_admin_new_order(order)

        return PlacedOrder(order=order, whatsapp_url=url)

    def _handoff_url(self, order: Order) -> str:
        try:
            store = self.store_service.get_settings()
        except StorefrontError as e:
            logger.error(f"❌ Store settings unavailable for {order.order_number}, using defaults: {e}")
            store = self.store_service.default_settings()

        message = handoff.build_order_message(store, order, self.store_service.config.STORE_TIMEZONE)
        return handoff.whatsapp_url(store.admin_phone, message)

    # --- Admin ---

    def get_order(self, order_id: int) -> Order:
        order = self.uow.run([lambda repo, _: repo.get_order(order_id)])
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        page = max(page, 1)
        offset = (page - 1) * limit
        orders, total = self.uow.run(
            [lambda repo, _: repo.list_orders(status or None, search or None, limit, offset)]
        )
        return {
            "orders": orders,
            "pagination": {
                "total": total,
                "total_pages": page_count(total, limit),
                "current_page": page,
                "limit": limit,
            },
        }

    def update_status(self, order_id: int, status: Optional[str], notes: Optional[str] = None) -> Order:
        if not status:
            raise ValidationError("Status is required")
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")

        updated_at = self.clock()
        order = self.uow.run([lambda repo, _: repo.update_order_status(order_id, status, notes, updated_at)])
        if order is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"Order {order.order_number} moved to {status}")
        return order
