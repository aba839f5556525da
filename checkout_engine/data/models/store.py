#checkout_engine/data/models/store.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime

from checkout_engine.data.database import Base


class StoreModel(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)

    #brak klucza = checkout niedostępny
    gateway_secret_key = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
