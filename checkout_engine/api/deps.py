# checkout_engine/api/deps.py
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from checkout_engine.data.database import get_db
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.errors import NotFoundError
from checkout_engine.repos.store_repo import StoreRepo
from checkout_engine.services.payment_client import PaymentClient


def get_current_store(
    x_store_id: str = Header(..., alias="X-Store-Id"),
    db: Session = Depends(get_db),
) -> StoreModel:
    # autoryzacja jest przed serwisem, tu tylko zakres sklepu
    store = StoreRepo(db).get_store(x_store_id)
    if not store:
        raise NotFoundError("Store not found")
    return store


def get_payment_client() -> PaymentClient:
    return PaymentClient()
