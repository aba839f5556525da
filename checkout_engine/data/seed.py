# checkout_engine/data/seed.py
from checkout_engine.data.database import SessionLocal
from checkout_engine.data.models import (
    DiscountModel,
    InventoryModel,
    StoreModel,
    VariantModel,
)
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_STORE_ID = "00000000-0000-0000-0000-000000000001"

DEMO_VARIANTS = [
    # sku, title, price_cents, on_hand
    ("TSHIRT-BLK-M", "T-shirt black M", 2500, 20),
    ("MUG-WHT", "Mug white", 1200, 5),
    ("POSTER-A2", "Poster A2", 1800, 0),
]


def seed(session_factory=SessionLocal):
    db = session_factory()
    try:
        # tylko gdy baza pusta
        if db.get(StoreModel, DEMO_STORE_ID):
            return
        db.add(StoreModel(id=DEMO_STORE_ID, name="Demo store"))
        db.flush()
        for sku, title, price, on_hand in DEMO_VARIANTS:
            db.add(VariantModel(store_id=DEMO_STORE_ID, sku=sku, title=title, price_cents=price))
            db.add(InventoryModel(store_id=DEMO_STORE_ID, sku=sku, on_hand=on_hand, reserved=0))
        db.add(
            DiscountModel(
                store_id=DEMO_STORE_ID,
                code="WELCOME10",
                type="percentage",
                value=10,
                max_discount_cents=500,
                usage_limit=100,
            )
        )
        db.commit()
        logger.info(f"Seeded demo store {DEMO_STORE_ID}")
    finally:
        db.close()
