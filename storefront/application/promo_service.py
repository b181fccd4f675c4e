from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from storefront.domain import messages
from storefront.domain.errors import ValidationError
from storefront.domain.pricing import ZERO, compute_discount, promo_rejection, utc_now
from storefront.interfaces.IUnitOfWork import IUnitOfWork


@dataclass
class PromoValidation:
    is_valid: bool
    discount_amount: Decimal
    message: str
    promo_id: Optional[int] = None


class PromoService:
    """Read-only promo check for the cart page. Never consumes a use."""

    def __init__(self, uow: IUnitOfWork, clock: Callable = utc_now):
        self.uow = uow
        self.clock = clock

    def validate(self, code: Optional[str], total_amount: Optional[Decimal]) -> PromoValidation:
        if not code or not code.strip() or not total_amount:
            raise ValidationError(messages.PROMO_MISSING_FIELDS)

        promo = self.uow.run([lambda repo, _: repo.find_promo_code(code)])
        reason = promo_rejection(promo, total_amount, self.clock())
        if reason is not None:
            return PromoValidation(
                is_valid=False,
                discount_amount=ZERO,
                message=reason,
                promo_id=promo.id if promo else None,
            )

        return PromoValidation(
            is_valid=True,
            discount_amount=compute_discount(promo, total_amount),
            message=messages.PROMO_APPLIED,
            promo_id=promo.id,
        )
