# checkout_engine/repos/inventory_repo.py
from sqlalchemy import select, update, case
from sqlalchemy.orm import Session

from checkout_engine.data.models.inventory import InventoryModel
from checkout_engine.data.models.variant import VariantModel
from checkout_engine.utils.clock import utcnow
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryRepo:
    """
    Ledger stanów magazynowych (on_hand / reserved) per (store, sku).

    Każda zmiana liczników to JEDEN warunkowy UPDATE:
    update inventory set reserved = reserved + n where ... and on_hand - reserved >= n
    i decyzja na podstawie rowcount, nigdy na podstawie wcześniejszego SELECT.
    Każda operacja od razu robi commit.
    """

    def __init__(self, db: Session):
        self.db = db

    #query - odczyt
    def get_variant(self, store_id: str, sku: str) -> VariantModel | None:
        return self.db.execute(
            select(VariantModel).where(
                VariantModel.store_id == store_id,
                VariantModel.sku == sku,
            )
        ).scalar_one_or_none()

    def get_inventory(self, store_id: str, sku: str) -> InventoryModel | None:
        return self.db.get(InventoryModel, (store_id, sku))

    def available(self, store_id: str, sku: str) -> int:
        inv = self.get_inventory(store_id, sku)
        if not inv:
            return 0
        return inv.on_hand - inv.reserved

    #atomowe operacje na licznikach
    def try_reserve(self, store_id: str, sku: str, qty: int) -> bool:
        stmt = (
            update(InventoryModel)
            .where(
                InventoryModel.store_id == store_id,
                InventoryModel.sku == sku,
                InventoryModel.on_hand - InventoryModel.reserved >= qty,
            )
            .values(reserved=InventoryModel.reserved + qty, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        ok = self._apply(stmt)
        logger.info(f"tryReserve {store_id}/{sku} qty={qty} -> {ok}")
        return ok

    def release(self, store_id: str, sku: str, qty: int) -> bool:
        # floor na 0, podwójny release nie zrobi ujemnego reserved
        stmt = (
            update(InventoryModel)
            .where(InventoryModel.store_id == store_id, InventoryModel.sku == sku)
            .values(
                reserved=case(
                    (InventoryModel.reserved > qty, InventoryModel.reserved - qty),
                    else_=0,
                ),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        ok = self._apply(stmt)
        logger.info(f"release {store_id}/{sku} qty={qty} -> {ok}")
        return ok

    def commit(self, store_id: str, sku: str, qty: int) -> bool:
        """Zamiana rezerwacji na trwały rozchód (po potwierdzeniu płatności)."""
        stmt = (
            update(InventoryModel)
            .where(
                InventoryModel.store_id == store_id,
                InventoryModel.sku == sku,
                InventoryModel.reserved >= qty,
                InventoryModel.on_hand >= qty,
            )
            .values(
                on_hand=InventoryModel.on_hand - qty,
                reserved=InventoryModel.reserved - qty,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        ok = self._apply(stmt)
        logger.info(f"commit {store_id}/{sku} qty={qty} -> {ok}")
        return ok

    def adjust(self, store_id: str, sku: str, delta: int) -> bool:
        """Korekta on_hand (np. dostawa). Nigdy poniżej aktualnie zarezerwowanych."""
        stmt = (
            update(InventoryModel)
            .where(
                InventoryModel.store_id == store_id,
                InventoryModel.sku == sku,
                InventoryModel.on_hand + delta >= InventoryModel.reserved,
            )
            .values(on_hand=InventoryModel.on_hand + delta, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        ok = self._apply(stmt)
        logger.info(f"adjust {store_id}/{sku} delta={delta} -> {ok}")
        return ok

    def create_inventory(self, store_id: str, sku: str, on_hand: int) -> InventoryModel:
        inv = InventoryModel(store_id=store_id, sku=sku, on_hand=on_hand, reserved=0)
        self.db.add(inv)
        self.db.commit()
        self.db.refresh(inv)
        return inv

    def _apply(self, stmt) -> bool:
        try:
            rowcount = self.db.execute(stmt).rowcount
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return rowcount == 1
