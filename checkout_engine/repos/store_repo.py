from sqlalchemy.orm import Session
from checkout_engine.data.models.store import StoreModel

class StoreRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_store(self, store_id: str) -> StoreModel | None:
        return self.db.get(StoreModel, store_id)

    def create_store(self, store: StoreModel) -> StoreModel:
        self.db.add(store)
        self.db.commit()
        self.db.refresh(store)
        return store
