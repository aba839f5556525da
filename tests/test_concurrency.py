"""
Wyścigi na prawdziwych wątkach i osobnych sesjach.
Jedyna synchronizacja to warunkowe UPDATE w bazie.
"""
from concurrent.futures import ThreadPoolExecutor

from checkout_engine.domain.errors import (
    CheckoutError,
    ConflictError,
    InsufficientInventoryError,
    InvalidRequestError,
)
from checkout_engine.repos.store_repo import StoreRepo
from checkout_engine.services.checkout_service import CheckoutService

from conftest import CHECKOUT_REQUEST


def _race(session_factory, gateway, store_id, cart_ids):
    def _checkout(cart_id):
        db = session_factory()
        try:
            store = StoreRepo(db).get_store(store_id)
            return CheckoutService(db, gateway).checkout(store, cart_id, dict(CHECKOUT_REQUEST))
        except CheckoutError as e:
            return e
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(cart_ids)) as pool:
        return list(pool.map(_checkout, cart_ids))


def test_inventory_is_never_oversold(session_factory, db, store, gateway, make_variant, make_cart, inventory_of):
    make_variant("X", on_hand=7)
    cart_ids = [make_cart([{"sku": "X", "qty": 2}], email=f"c{i}@example.com") for i in range(10)]

    results = _race(session_factory, gateway, store.id, cart_ids)

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if not isinstance(r, dict)]
    assert len(successes) == 3
    assert all(isinstance(f, InsufficientInventoryError) and f.sku == "X" for f in failures)
    assert inventory_of("X") == (7, 6)


def test_single_use_discount_is_redeemed_once(session_factory, db, store, gateway, make_variant, make_discount, make_cart, inventory_of):
    make_variant("A", on_hand=100)
    discount = make_discount(code="ONCE", usage_limit=1)
    cart_ids = [
        make_cart([{"sku": "A", "qty": 1}], code="ONCE", email=f"c{i}@example.com") for i in range(8)
    ]

    results = _race(session_factory, gateway, store.id, cart_ids)

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if not isinstance(r, dict)]
    assert len(successes) == 1
    assert len(failures) == 7
    assert all(isinstance(f, InvalidRequestError) for f in failures)
    db.refresh(discount)
    assert discount.usage_count == 1
    # przegrani oddali swoje rezerwacje
    assert inventory_of("A") == (100, 1)


def test_same_cart_checked_out_once(session_factory, db, store, gateway, make_variant, make_cart, inventory_of):
    make_variant("A", on_hand=10)
    cart_id = make_cart([{"sku": "A", "qty": 3}])

    results = _race(session_factory, gateway, store.id, [cart_id] * 6)

    successes = [r for r in results if isinstance(r, dict)]
    assert len(successes) == 1
    assert all(isinstance(r, ConflictError) for r in results if not isinstance(r, dict))
    assert inventory_of("A") == (10, 3)
    assert len(gateway.sessions) == 1
