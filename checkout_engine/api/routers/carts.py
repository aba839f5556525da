# checkout_engine/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout_engine.api.deps import get_current_store, get_payment_client
from checkout_engine.data.database import get_db
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.schemas import (
    ApplyDiscountIn,
    CartOut,
    CheckoutIn,
    CheckoutOut,
    CreateCartIn,
    DiscountAppliedOut,
    SetItemsIn,
)
from checkout_engine.services.cart_service import CartService
from checkout_engine.services.checkout_service import CheckoutService
from checkout_engine.services.payment_client import PaymentClient

router = APIRouter(prefix="/carts", tags=["carts"])


@router.post("", response_model=CartOut, status_code=201)
def create_cart(
    payload: CreateCartIn,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    return CartService(db).create_cart(store.id, payload.customer_email)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: str,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    return CartService(db).get_cart(store.id, cart_id)


@router.post("/{cart_id}/items", response_model=CartOut)
def set_items(
    cart_id: str,
    payload: SetItemsIn,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    """Zastępuje całą zawartość koszyka."""
    items = [item.model_dump() for item in payload.items]
    return CartService(db).set_items(store.id, cart_id, items)


@router.post("/{cart_id}/apply-discount", response_model=DiscountAppliedOut)
def apply_discount(
    cart_id: str,
    payload: ApplyDiscountIn,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    return CartService(db).apply_discount(store.id, cart_id, payload.code)


@router.delete("/{cart_id}/discount", response_model=DiscountAppliedOut)
def remove_discount(
    cart_id: str,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    return CartService(db).remove_discount(store.id, cart_id)


@router.post("/{cart_id}/checkout", response_model=CheckoutOut)
def checkout(
    cart_id: str,
    payload: CheckoutIn,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
    payment_client: PaymentClient = Depends(get_payment_client),
):
    """
    Rezerwuje magazyn i rabat, tworzy sesję płatności.
    Przy błędzie wszystko jest zwalniane, a koszyk wraca do open.
    """
    svc = CheckoutService(db, payment_client)
    return svc.checkout(store, cart_id, payload.model_dump())
