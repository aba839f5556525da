# checkout_engine/services/inventory_service.py
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout_engine.domain.errors import ConflictError, InvalidRequestError, NotFoundError
from checkout_engine.repos.inventory_repo import InventoryRepo
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryService:
    """Odczyt i korekty stanów (dostawa, inwentaryzacja). Rezerwacje są w ReservationService."""

    def __init__(self, db: Session):
        self.repo = InventoryRepo(db)

    def get_inventory(self, store_id: str, sku: str) -> Dict[str, Any]:
        inv = self.repo.get_inventory(store_id, sku)
        if not inv:
            if not self.repo.get_variant(store_id, sku):
                raise NotFoundError(f"SKU not found: {sku}")
            return {"sku": sku, "on_hand": 0, "reserved": 0, "available": 0}
        return _view(inv)

    def adjust(self, store_id: str, sku: str, delta: int) -> Dict[str, Any]:
        if delta == 0:
            raise InvalidRequestError("delta must not be 0")
        if not self.repo.get_variant(store_id, sku):
            raise NotFoundError(f"SKU not found: {sku}")

        if not self.repo.adjust(store_id, sku, delta):
            if self.repo.get_inventory(store_id, sku) is not None or delta < 0:
                raise ConflictError(f"Cannot reduce on_hand of {sku} below reserved quantity")
            self._create(store_id, sku, delta)

        # expire_on_commit - świeży odczyt po UPDATE
        return _view(self.repo.get_inventory(store_id, sku))

    def _create(self, store_id: str, sku: str, on_hand: int) -> None:
        try:
            self.repo.create_inventory(store_id, sku, on_hand)
            logger.info(f"Created inventory {store_id}/{sku} on_hand={on_hand}")
        except IntegrityError:
            # równolegle pierwsze przyjęcie - rekord już jest, więc zwykły adjust
            self.repo.db.rollback()
            if not self.repo.adjust(store_id, sku, on_hand):
                raise ConflictError(f"Inventory of {sku} changed concurrently, please retry")


def _view(inv) -> Dict[str, Any]:
    return {
        "sku": inv.sku,
        "on_hand": inv.on_hand,
        "reserved": inv.reserved,
        "available": inv.available,
    }
