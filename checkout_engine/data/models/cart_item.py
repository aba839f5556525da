import uuid

from sqlalchemy import Column, Integer, ForeignKey, String, CheckConstraint
from sqlalchemy.orm import relationship

from checkout_engine.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String, nullable=False)

    #snapshot z chwili dodania
    title = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)

    #kolejność w koszyku = kolejność rezerwacji
    position = Column(Integer, nullable=False, default=0)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (CheckConstraint("qty > 0", name="ck_cart_item_qty"),)
