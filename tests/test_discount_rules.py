from datetime import timedelta

import pytest

from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.domain.errors import InvalidRequestError
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.services.discount_rules import (
    calculate_discount,
    is_capped_percentage,
    normalize_code,
    validate_discount,
)
from checkout_engine.utils.clock import utcnow


def _discount(**fields):
    values = dict(
        id="d-1",
        type="percentage",
        value=10,
        status="active",
        min_purchase_cents=0,
        max_discount_cents=None,
        starts_at=None,
        expires_at=None,
        usage_limit=None,
        usage_limit_per_customer=None,
        usage_count=0,
    )
    values.update(fields)
    return DiscountModel(**values)


@pytest.mark.parametrize(
    "fields, subtotal, expected",
    [
        ({"type": "percentage", "value": 10, "max_discount_cents": 50}, 1000, 50),
        ({"type": "percentage", "value": 10}, 1000, 100),
        ({"type": "percentage", "value": 15}, 999, 149),
        ({"type": "fixed_amount", "value": 2000}, 1000, 1000),
        ({"type": "fixed_amount", "value": 300}, 1000, 300),
    ],
)
def test_calculate_discount(fields, subtotal, expected):
    assert calculate_discount(_discount(**fields), subtotal) == expected


def test_normalize_code():
    assert normalize_code("  summer10 ") == "SUMMER10"


def test_capped_percentage_detection():
    assert is_capped_percentage(_discount(max_discount_cents=50))
    assert not is_capped_percentage(_discount())
    assert not is_capped_percentage(_discount(type="fixed_amount", max_discount_cents=50))


@pytest.mark.parametrize(
    "fields, message",
    [
        ({"status": "inactive"}, "Discount is not active"),
        ({"starts_at": utcnow() + timedelta(days=1)}, "Discount has not started yet"),
        ({"expires_at": utcnow() - timedelta(minutes=1)}, "Discount has expired"),
        ({"min_purchase_cents": 2000}, "Minimum purchase of $20.00 required"),
        ({"usage_limit": 3, "usage_count": 3}, "Discount usage limit reached"),
    ],
)
def test_validate_rejects(db, fields, message):
    with pytest.raises(InvalidRequestError) as exc:
        validate_discount(db, _discount(**fields), 1000)
    assert exc.value.message == message


def test_validate_accepts_discount_inside_window(db):
    discount = _discount(
        starts_at=utcnow() - timedelta(days=1),
        expires_at=utcnow() + timedelta(days=1),
        min_purchase_cents=1000,
        usage_limit=2,
        usage_count=1,
    )
    validate_discount(db, discount, 1000, "someone@example.com")


def test_validate_per_customer_limit_is_case_insensitive(db, make_discount):
    discount = make_discount(code="ONCE", usage_limit_per_customer=1)
    DiscountRepo(db).record_usage(discount.id, "Buyer@Example.com", "cart-1")

    with pytest.raises(InvalidRequestError) as exc:
        validate_discount(db, discount, 1000, "BUYER@example.com")
    assert exc.value.message == "You have already used this discount"

    # inny klient
    validate_discount(db, discount, 1000, "other@example.com")
