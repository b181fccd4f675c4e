"""Pure money and promo-eligibility rules shared by checkout and promo validation."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from storefront.domain import messages
from storefront.domain.entities import PERCENTAGE, PromoCode

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps (SQLite hands these back) as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def line_subtotal(price: Decimal, quantity: int) -> Decimal:
    return to_money(Decimal(price) * quantity)


def promo_rejection(promo: PromoCode | None, subtotal: Decimal, now: datetime) -> str | None:
    """Return why ``promo`` can't be applied to ``subtotal`` at ``now``, or None if it can.

    The validity window is half-open: ``valid_from <= now < valid_until``, and a
    missing ``valid_until`` never expires.
    """
    if promo is None:
        return messages.PROMO_NOT_FOUND
    if not promo.is_active:
        return messages.PROMO_INACTIVE

    now = as_utc(now)
    if now < as_utc(promo.valid_from):
        return messages.PROMO_NOT_STARTED
    if promo.valid_until is not None and now >= as_utc(promo.valid_until):
        return messages.PROMO_EXPIRED
    if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
        return messages.PROMO_EXHAUSTED
    if subtotal < promo.min_purchase:
        return messages.PROMO_MIN_PURCHASE.format(min_purchase=messages.format_price(promo.min_purchase))
    return None


def compute_discount(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """Discount for an eligible promo, capped by ``max_discount`` and then by the subtotal."""
    if promo.discount_type == PERCENTAGE:
        discount = to_money(subtotal * promo.discount_value / 100)
    else:
        discount = to_money(promo.discount_value)

    if promo.max_discount is not None and discount > promo.max_discount:
        discount = to_money(promo.max_discount)
    # Never discount below zero total
    return max(ZERO, min(discount, subtotal))
