#checkout_engine/data/models/discount.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, CheckConstraint, UniqueConstraint

from checkout_engine.data.database import Base


class DiscountModel(Base):
    __tablename__ = "discounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)

    #zawsze UPPER + strip
    code = Column(String, nullable=True)
    type = Column(String, nullable=False)  # percentage, fixed_amount
    value = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")  # active, inactive

    min_purchase_cents = Column(Integer, nullable=False, default=0)
    max_discount_cents = Column(Integer, nullable=True)  # tylko percentage

    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_customer = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)

    gateway_coupon_id = Column(String, nullable=True)
    gateway_promotion_code_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("store_id", "code", name="u_discount_store_code"),
        CheckConstraint("usage_count >= 0", name="ck_discount_usage_count"),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="ck_discount_usage_limit",
        ),
    )
