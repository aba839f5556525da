# checkout_engine/services/discount_rules.py
"""
Walidacja i wyliczanie rabatu.

Obie funkcje tylko czytają stan - nic nie zapisują. Rezerwacja użyć
jest w DiscountRepo.reserve_usage (warunkowy UPDATE).
"""
from datetime import datetime

from sqlalchemy.orm import Session

from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.domain.errors import InvalidRequestError
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.utils.clock import utcnow, as_utc

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def is_capped_percentage(discount: DiscountModel) -> bool:
    # bramka nie zna pojęcia capu, kwotę trzeba liczyć u nas
    return discount.type == PERCENTAGE and bool(discount.max_discount_cents)


def validate_discount(
    db: Session,
    discount: DiscountModel,
    subtotal_cents: int,
    customer_email: str | None = None,
    now: datetime | None = None,
) -> None:
    now = now or utcnow()

    if discount.status != "active":
        raise InvalidRequestError("Discount is not active")

    starts_at = as_utc(discount.starts_at)
    expires_at = as_utc(discount.expires_at)
    if starts_at and now < starts_at:
        raise InvalidRequestError("Discount has not started yet")
    if expires_at and now > expires_at:
        raise InvalidRequestError("Discount has expired")

    if discount.min_purchase_cents > 0 and subtotal_cents < discount.min_purchase_cents:
        raise InvalidRequestError(
            f"Minimum purchase of ${discount.min_purchase_cents / 100:.2f} required"
        )

    if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
        raise InvalidRequestError("Discount usage limit reached")

    if customer_email and discount.usage_limit_per_customer is not None:
        used = DiscountRepo(db).count_customer_usage(discount.id, customer_email)
        if used >= discount.usage_limit_per_customer:
            raise InvalidRequestError("You have already used this discount")


def calculate_discount(discount: DiscountModel, subtotal_cents: int) -> int:
    if discount.type == PERCENTAGE:
        amount = (subtotal_cents * discount.value) // 100
        if discount.max_discount_cents is not None and amount > discount.max_discount_cents:
            amount = discount.max_discount_cents
        return amount

    if discount.type == FIXED_AMOUNT:
        return min(discount.value, subtotal_cents)

    return 0
