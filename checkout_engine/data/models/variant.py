#checkout_engine/data/models/variant.py
import uuid

from sqlalchemy import Column, Integer, ForeignKey, String, UniqueConstraint

from checkout_engine.data.database import Base


class VariantModel(Base):
    """Wariant produktu (tylko odczyt, katalog jest zewnętrzny)."""

    __tablename__ = "variants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    sku = Column(String, nullable=False)

    title = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")  # active, inactive

    __table_args__ = (UniqueConstraint("store_id", "sku", name="u_variant_store_sku"),)
