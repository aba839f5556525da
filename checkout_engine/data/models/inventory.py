#checkout_engine/data/models/inventory.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, CheckConstraint

from checkout_engine.data.database import Base


class InventoryModel(Base):
    __tablename__ = "inventory"

    store_id = Column(String(36), ForeignKey("stores.id"), primary_key=True)
    sku = Column(String, primary_key=True)

    on_hand = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    #ostatnia linia obrony, ledger i tak pilnuje tego w WHERE
    __table_args__ = (
        CheckConstraint("on_hand >= 0", name="ck_inventory_on_hand"),
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved"),
        CheckConstraint("reserved <= on_hand", name="ck_inventory_reserved_on_hand"),
    )

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved
