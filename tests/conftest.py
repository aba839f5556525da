import os

# przed importem checkout_engine - domyślny engine nie może wskazywać na postgresa
os.environ["DATABASE_URL"] = "sqlite://"

import itertools
import threading

import pytest
import requests
from sqlalchemy.orm import sessionmaker

from checkout_engine.data.database import Base, make_engine
from checkout_engine.data.models import (
    DiscountModel,
    InventoryModel,
    StoreModel,
    VariantModel,
)
from checkout_engine.services.cart_service import CartService

CHECKOUT_REQUEST = {
    "success_url": "https://shop.example/success",
    "cancel_url": "https://shop.example/cancel",
}


class FakeGateway:
    """Zamiast PaymentClient - zapisuje wywołania, może symulować awarie."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.sessions = []
        self.coupons = []
        self.promotion_codes = []
        self.deleted_coupons = []
        self.deactivated_promotion_codes = []
        self.fail_sessions = False
        self.fail_coupons = False
        # wołane z params przed odpowiedzią bramki
        self.on_session = None
        # gdy ustawione - zwracane zamiast poprawnej sesji
        self.session_response = None

    def _next_id(self, prefix):
        with self._lock:
            return f"{prefix}_{next(self._ids)}"

    def create_checkout_session(self, api_key, params):
        if self.fail_sessions:
            raise requests.ConnectionError("gateway down")
        session_id = self._next_id("cs_test")
        with self._lock:
            self.sessions.append(params)
        if self.on_session is not None:
            self.on_session(params)
        if self.session_response is not None:
            return self.session_response
        return {"id": session_id, "url": f"https://pay.example/{session_id}"}

    def create_coupon(self, api_key, params):
        if self.fail_coupons:
            raise requests.ConnectionError("gateway down")
        with self._lock:
            self.coupons.append(params)
        return {"id": self._next_id("co")}

    def delete_coupon(self, api_key, coupon_id):
        self.deleted_coupons.append(coupon_id)
        return {"id": coupon_id, "deleted": True}

    def create_promotion_code(self, api_key, params):
        self.promotion_codes.append(params)
        return {"id": self._next_id("promo")}

    def deactivate_promotion_code(self, api_key, promotion_code_id):
        self.deactivated_promotion_codes.append(promotion_code_id)
        return {"id": promotion_code_id, "active": False}


@pytest.fixture
def engine(tmp_path):
    # plik, nie :memory: - wątki w testach współbieżności mają osobne połączenia
    eng = make_engine(f"sqlite:///{tmp_path / 'checkout.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store(db):
    s = StoreModel(name="Test store", gateway_secret_key="sk_test_123")
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


@pytest.fixture
def make_variant(db, store):
    def _make(sku, price_cents=500, on_hand=10, reserved=0, status="active", title=None):
        db.add(
            VariantModel(
                store_id=store.id,
                sku=sku,
                title=title or f"Product {sku}",
                price_cents=price_cents,
                status=status,
            )
        )
        db.add(InventoryModel(store_id=store.id, sku=sku, on_hand=on_hand, reserved=reserved))
        db.commit()

    return _make


@pytest.fixture
def make_discount(db, store):
    def _make(**fields):
        fields.setdefault("type", "percentage")
        fields.setdefault("value", 10)
        fields.setdefault("status", "active")
        fields.setdefault("min_purchase_cents", 0)
        fields.setdefault("usage_count", 0)
        discount = DiscountModel(store_id=store.id, **fields)
        db.add(discount)
        db.commit()
        db.refresh(discount)
        return discount

    return _make


@pytest.fixture
def make_cart(db, store):
    """Koszyk z pozycjami (i opcjonalnie rabatem) gotowy do checkout."""

    def _make(items, code=None, email="buyer@example.com"):
        svc = CartService(db)
        cart = svc.create_cart(store.id, email)
        if items:
            svc.set_items(store.id, cart["id"], items)
        if code:
            svc.apply_discount(store.id, cart["id"], code)
        return cart["id"]

    return _make


@pytest.fixture
def inventory_of(db, store):
    """(on_hand, reserved) prosto z bazy."""

    def _read(sku):
        inv = db.get(InventoryModel, (store.id, sku))
        db.refresh(inv)
        return inv.on_hand, inv.reserved

    return _read
