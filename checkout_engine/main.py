# checkout_engine/main.py
import uvicorn

from checkout_engine.api import create_app
from checkout_engine.data.database import Base, engine
from checkout_engine.data import models  # noqa: F401  rejestracja tabel w Base.metadata
from checkout_engine.data.seed import seed
from checkout_engine.utils.settings import SEED_DEMO_DATA
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)

logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
try:
    Base.metadata.create_all(bind=engine)
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    raise

if SEED_DEMO_DATA:
    seed()

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
