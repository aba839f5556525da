# checkout_engine/services/reservation_service.py
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from checkout_engine.data.models.cart import CartModel
from checkout_engine.data.models.cart_item import CartItemModel
from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.domain.errors import InsufficientInventoryError, InvalidRequestError
from checkout_engine.repos.cart_repo import CartRepo
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.repos.inventory_repo import InventoryRepo
from checkout_engine.services.cart_service import subtotal_of
from checkout_engine.services.discount_rules import calculate_discount, validate_discount
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Reservation:
    store_id: str
    cart_id: str
    # (sku, qty) w kolejności koszyka
    inventory: list[tuple[str, int]] = field(default_factory=list)
    discount: DiscountModel | None = None
    discount_usage_reserved: bool = False
    discount_amount_cents: int = 0
    subtotal_cents: int = 0


class ReservationService:
    """
    Rezerwuje usage rabatu i stany magazynowe dla całego koszyka.

    Każdy krok to osobny atomowy UPDATE, więc "wszystko albo nic" osiągamy
    kompensacją: przy pierwszej porażce zwalniamy to co już zajęte,
    w odwrotnej kolejności.
    """

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartRepo(db)
        self.inventory = InventoryRepo(db)
        self.discounts = DiscountRepo(db)

    def reserve(
        self,
        cart: CartModel,
        items: list[CartItemModel],
        discount: DiscountModel | None,
    ) -> Reservation:
        reservation = Reservation(
            store_id=cart.store_id,
            cart_id=cart.id,
            subtotal_cents=subtotal_of(items),
        )

        # 1. walidacja rabatu (plus limit per klient)
        if discount is not None:
            try:
                validate_discount(
                    self.db, discount, reservation.subtotal_cents, cart.customer_email
                )
            except InvalidRequestError:
                self.carts.clear_discount(cart.id)
                raise

            # 2. rezerwacja usage (compare and swap)
            reserved, counted = self.discounts.reserve_usage(discount)
            if not reserved:
                self.carts.clear_discount(cart.id)
                self.db.refresh(discount)
                if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
                    raise InvalidRequestError("Discount usage limit reached")
                raise InvalidRequestError("Discount is no longer valid")

            reservation.discount = discount
            reservation.discount_usage_reserved = counted
            reservation.discount_amount_cents = calculate_discount(
                discount, reservation.subtotal_cents
            )

        # 3. magazyn, pozycja po pozycji
        try:
            for item in items:
                if not self.inventory.try_reserve(cart.store_id, item.sku, item.qty):
                    raise InsufficientInventoryError(item.sku)
                reservation.inventory.append((item.sku, item.qty))
        except Exception as e:
            logger.warning(
                f"Cart {cart.id}: inventory reservation failed ({e}), "
                f"rolling back {len(reservation.inventory)} reservation(s)"
            )
            self.release(reservation)
            raise

        logger.info(
            f"Cart {cart.id}: reserved {len(reservation.inventory)} line(s), "
            f"discount usage reserved={reservation.discount_usage_reserved}"
        )
        return reservation

    def release(self, reservation: Reservation) -> None:
        """Kompensacja. Idempotentna - po wywołaniu rezerwacja jest pusta."""
        while reservation.inventory:
            sku, qty = reservation.inventory.pop()
            self.inventory.release(reservation.store_id, sku, qty)

        if reservation.discount_usage_reserved and reservation.discount is not None:
            self.discounts.release_usage(reservation.discount.id)
            reservation.discount_usage_reserved = False
