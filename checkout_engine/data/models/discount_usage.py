#checkout_engine/data/models/discount_usage.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, String, DateTime, Index, UniqueConstraint

from checkout_engine.data.database import Base


class DiscountUsageModel(Base):
    """Historia użyć, tylko do limitu per klient."""

    __tablename__ = "discount_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    discount_id = Column(String(36), ForeignKey("discounts.id"), nullable=False)
    customer_email = Column(String, nullable=False)
    cart_id = Column(String(36), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    #powtórzony webhook nie zapisze drugiego użycia
    __table_args__ = (
        UniqueConstraint("discount_id", "cart_id", name="u_discount_usage_cart"),
        Index("ix_discount_usage_customer", "discount_id", "customer_email"),
    )
