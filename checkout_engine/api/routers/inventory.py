# checkout_engine/api/routers/inventory.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout_engine.api.deps import get_current_store
from checkout_engine.data.database import get_db
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.schemas import InventoryAdjustIn, InventoryOut
from checkout_engine.services.inventory_service import InventoryService

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/{sku}", response_model=InventoryOut)
def get_inventory(
    sku: str,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    return InventoryService(db).get_inventory(store.id, sku)


@router.post("/{sku}/adjust", response_model=InventoryOut)
def adjust_inventory(
    sku: str,
    payload: InventoryAdjustIn,
    store: StoreModel = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    """on_hand += delta, nigdy poniżej reserved (wtedy 409)."""
    return InventoryService(db).adjust(store.id, sku, payload.delta)
