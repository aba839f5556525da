# checkout_engine/api/routers/discounts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout_engine.api.deps import get_current_store, get_payment_client
from checkout_engine.data.database import get_db
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.schemas import (
    DiscountCreateIn,
    DiscountListOut,
    DiscountOut,
    DiscountUpdateIn,
)
from checkout_engine.services.discount_service import DiscountService
from checkout_engine.services.payment_client import PaymentClient

router = APIRouter(prefix="/discounts", tags=["discounts"])


def get_service(
    db: Session = Depends(get_db),
    payment_client: PaymentClient = Depends(get_payment_client),
) -> DiscountService:
    return DiscountService(db, payment_client)


@router.get("", response_model=DiscountListOut)
def list_discounts(
    store: StoreModel = Depends(get_current_store),
    svc: DiscountService = Depends(get_service),
):
    return {"items": svc.list_discounts(store)}


@router.post("", response_model=DiscountOut, status_code=201)
def create_discount(
    payload: DiscountCreateIn,
    store: StoreModel = Depends(get_current_store),
    svc: DiscountService = Depends(get_service),
):
    return svc.create_discount(store, payload.model_dump())


@router.get("/{discount_id}", response_model=DiscountOut)
def get_discount(
    discount_id: str,
    store: StoreModel = Depends(get_current_store),
    svc: DiscountService = Depends(get_service),
):
    return svc.get_discount(store, discount_id)


@router.patch("/{discount_id}", response_model=DiscountOut)
def update_discount(
    discount_id: str,
    payload: DiscountUpdateIn,
    store: StoreModel = Depends(get_current_store),
    svc: DiscountService = Depends(get_service),
):
    # tylko pola podane w body
    return svc.update_discount(store, discount_id, payload.model_dump(exclude_unset=True))


@router.delete("/{discount_id}")
def delete_discount(
    discount_id: str,
    store: StoreModel = Depends(get_current_store),
    svc: DiscountService = Depends(get_service),
):
    """Nie kasuje rekordu - koszyki i historia użyć dalej się do niego odwołują."""
    return svc.deactivate_discount(store, discount_id)
