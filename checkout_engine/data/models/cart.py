#checkout_engine/data/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from checkout_engine.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    customer_email = Column(String, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(String, nullable=False, default="open")  # open, checked_out, expired

    discount_id = Column(String(36), ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True)
    discount_code = Column(String, nullable=True)
    discount_amount_cents = Column(Integer, nullable=False, default=0)
    #czy checkout podbił usage_count (release musi wiedzieć czy zdejmowac)
    discount_usage_reserved = Column(Boolean, nullable=False, default=False)
    #czy koszyk trzyma rezerwacje magazynu (zwalnia tylko ten, kto zdejmie flagę)
    inventory_reserved = Column(Boolean, nullable=False, default=False)

    payment_session_id = Column(String, nullable=True, unique=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )
