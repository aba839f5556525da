# checkout_engine/repos/cart_repo.py
from datetime import datetime

from sqlalchemy import select, update, delete, case
from sqlalchemy.orm import Session

from checkout_engine.data.models.cart import CartModel
from checkout_engine.data.models.cart_item import CartItemModel
from checkout_engine.utils.clock import utcnow

_NO_DISCOUNT = {
    "discount_id": None,
    "discount_code": None,
    "discount_amount_cents": 0,
}


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    #query
    def get_cart(self, store_id: str, cart_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.id == cart_id, CartModel.store_id == store_id)
        ).scalar_one_or_none()

    def get_cart_by_session(self, session_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.payment_session_id == session_id)
        ).scalar_one_or_none()

    def get_cart_items(self, cart_id: str) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.position)
            ).scalars().all()
        )

    #commands
    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def update_cart(
        self,
        cart_id: str,
        new_data: dict,
        *,
        store_id: str | None = None,
        status: str | None = None,
    ) -> int:
        """
        Warunkowy update koszyka, zwraca rowcount.
        np. update carts set status='checked_out' where id=1 and status='open'
        0 rows => ktoś był pierwszy (albo koszyk nie istnieje).
        """
        conditions = [CartModel.id == cart_id]
        if store_id is not None:
            conditions.append(CartModel.store_id == store_id)
        if status is not None:
            conditions.append(CartModel.status == status)

        stmt = (
            update(CartModel)
            .where(*conditions)
            .values(**new_data, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        rowcount = self.db.execute(stmt).rowcount
        self.db.commit()
        return rowcount

    def clear_discount(self, cart_id: str) -> int:
        return self.update_cart(cart_id, dict(_NO_DISCOUNT))

    def clear_discount_if_open(self, store_id: str, cart_id: str) -> int:
        return self.update_cart(cart_id, dict(_NO_DISCOUNT), store_id=store_id, status="open")

    def replace_items(self, store_id: str, cart_id: str, items: list[CartItemModel]) -> bool:
        """
        Podmiana całej zawartości koszyka w jednej transakcji.
        Najpierw warunkowy touch (status = open), potem delete + insert.
        Gdy koszyk nie jest już open - nic nie zmieniamy.
        """
        try:
            touched = self.db.execute(
                update(CartModel)
                .where(
                    CartModel.id == cart_id,
                    CartModel.store_id == store_id,
                    CartModel.status == "open",
                )
                .values(updated_at=utcnow())
                .execution_options(synchronize_session=False)
            ).rowcount

            if touched == 0:
                self.db.rollback()
                return False

            self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
            for position, item in enumerate(items):
                item.cart_id = cart_id
                item.position = position
                self.db.add(item)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def mark_reserved(self, cart_id: str, discount_usage_reserved: bool, discount_amount_cents: int) -> int:
        """
        Zapis tego, co checkout faktycznie zarezerwował.
        0 rows => koszyk nie jest już checked_out (sweep go wygasił), rezerwacje oddaje wywołujący.
        """
        return self.update_cart(
            cart_id,
            {
                "inventory_reserved": True,
                "discount_usage_reserved": discount_usage_reserved,
                "discount_amount_cents": discount_amount_cents,
            },
            status="checked_out",
        )

    def claim_reservation(self, cart_id: str) -> int:
        """
        Przejęcie trzymanych rezerwacji do zwolnienia.
        update carts set inventory_reserved=false where id=? and inventory_reserved=true
        Tylko ten, kto dostanie 1 row, zwalnia magazyn i rabat.
        """
        stmt = (
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.inventory_reserved.is_(True))
            .values(inventory_reserved=False, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        rowcount = self.db.execute(stmt).rowcount
        self.db.commit()
        return rowcount

    def revert_to_open(self, cart_id: str, discount_amount_cents: int) -> int:
        """checked_out -> open, kwota rabatu wraca do stanu sprzed checkout (0 gdy rabat odpięty)."""
        return self.update_cart(
            cart_id,
            {
                "status": "open",
                "inventory_reserved": False,
                "discount_usage_reserved": False,
                "discount_amount_cents": case(
                    (CartModel.discount_id.is_(None), 0),
                    else_=discount_amount_cents,
                ),
            },
            status="checked_out",
        )

    def mark_finalized(self, session_id: str, now: datetime) -> int:
        """Bramka idempotencji dla potwierdzenia płatności."""
        stmt = (
            update(CartModel)
            .where(
                CartModel.payment_session_id == session_id,
                CartModel.status == "checked_out",
                CartModel.finalized_at.is_(None),
            )
            .values(finalized_at=now, inventory_reserved=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        rowcount = self.db.execute(stmt).rowcount
        self.db.commit()
        return rowcount

    def expire_checked_out(
        self,
        *,
        cart_id: str | None = None,
        session_id: str | None = None,
        store_id: str | None = None,
    ) -> int:
        """checked_out -> expired, tylko jeśli płatność nie została sfinalizowana."""
        conditions = [
            CartModel.status == "checked_out",
            CartModel.finalized_at.is_(None),
        ]
        if cart_id is not None:
            conditions.append(CartModel.id == cart_id)
        if session_id is not None:
            conditions.append(CartModel.payment_session_id == session_id)
        if store_id is not None:
            conditions.append(CartModel.store_id == store_id)
        if cart_id is None and session_id is None:
            raise ValueError("cart_id or session_id is required")

        now = utcnow()
        stmt = (
            update(CartModel)
            .where(*conditions)
            .values(status="expired", updated_at=now)
            .execution_options(synchronize_session=False)
        )
        rowcount = self.db.execute(stmt).rowcount
        self.db.commit()
        return rowcount

    def refresh(self, cart: CartModel) -> CartModel:
        self.db.refresh(cart)
        return cart
