"""WhatsApp checkout hand-off: the order summary the customer sends to the store."""

import re
from urllib.parse import quote

import pytz

from storefront.domain import messages
from storefront.domain.entities import Order, StoreSettings
from storefront.domain.messages import format_price
from storefront.domain.pricing import as_utc


def order_details(order: Order) -> str:
    return "\n".join(
        messages.ORDER_LINE.format(
            name=item.product_name,
            quantity=item.quantity,
            subtotal=format_price(item.subtotal),
        )
        for item in order.items
    )


def build_order_message(store: StoreSettings, order: Order, timezone_name: str) -> str:
    promo_block = ""
    if order.discount_amount > 0:
        promo_block = messages.PROMO_BLOCK.format(
            subtotal=format_price(order.subtotal),
            code=order.promo_code,
            discount=format_price(order.discount_amount),
        )

    placed_at = "-"
    if order.created_at is not None:
        local = as_utc(order.created_at).astimezone(pytz.timezone(timezone_name))
        placed_at = local.strftime("%d/%m/%Y %H:%M")

    return messages.ORDER_MESSAGE.format(
        store_name=store.store_name,
        order_details=order_details(order),
        promo_block=promo_block,
        total=format_price(order.total_amount),
        order_number=order.order_number,
        placed_at=placed_at,
        name=order.customer_name,
        phone=order.customer_phone,
        email=order.customer_email or "-",
    )


def whatsapp_url(phone: str, text: str) -> str:
    """wa.me deep link; wa.me wants the number as bare digits with country code."""
    digits = re.sub(r"\D", "", phone)
    return f"https://wa.me/{digits}?text={quote(text, safe='')}"
