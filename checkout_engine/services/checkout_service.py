# checkout_engine/services/checkout_service.py
from typing import Dict, Any

from sqlalchemy.orm import Session

from checkout_engine.data.models.cart import CartModel
from checkout_engine.data.models.cart_item import CartItemModel
from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PaymentGatewayError,
)
from checkout_engine.repos.cart_repo import CartRepo
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.repos.inventory_repo import InventoryRepo
from checkout_engine.services.discount_rules import PERCENTAGE, is_capped_percentage
from checkout_engine.services.payment_client import PaymentClient
from checkout_engine.services.reservation_service import Reservation, ReservationService
from checkout_engine.utils.clock import utcnow
from checkout_engine.utils.settings import CURRENCY, DEFAULT_SHIPPING_COUNTRIES
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SHIPPING_OPTIONS = [
    {
        "shipping_rate_data": {
            "type": "fixed_amount",
            "fixed_amount": {"amount": 0, "currency": CURRENCY},
            "display_name": "Standard Shipping",
            "delivery_estimate": {
                "minimum": {"unit": "business_day", "value": 5},
                "maximum": {"unit": "business_day", "value": 7},
            },
        },
    },
]


def build_session_params(
    cart: CartModel,
    items: list[CartItemModel],
    discount: DiscountModel | None,
    coupon_id: str | None,
    request: Dict[str, Any],
) -> Dict[str, Any]:
    """Request do bramki: pozycje z cen snapshotu, rabat jako kupon, shipping bez zmian."""
    params: Dict[str, Any] = {
        "mode": "payment",
        "customer_email": cart.customer_email,
        "line_items": [
            {
                "price_data": {
                    "currency": CURRENCY,
                    "product_data": {"name": i.title},
                    "unit_amount": i.unit_price_cents,
                },
                "quantity": i.qty,
            }
            for i in items
        ],
        "success_url": request["success_url"],
        "cancel_url": request["cancel_url"],
        "metadata": {"cart_id": cart.id, "store_id": cart.store_id},
    }

    if discount is not None:
        params["metadata"].update(
            {
                "discount_id": discount.id,
                "discount_code": discount.code or "",
                "discount_type": discount.type,
            }
        )

    if coupon_id:
        params["discounts"] = [{"coupon": coupon_id}]

    if request.get("collect_shipping"):
        params["shipping_address_collection"] = {
            "allowed_countries": request.get("shipping_countries") or DEFAULT_SHIPPING_COUNTRIES,
        }
        params["shipping_options"] = request.get("shipping_options") or DEFAULT_SHIPPING_OPTIONS

    return params


class CheckoutService:
    """
    Koszyk -> sesja płatności.

    open -> checked_out warunkowym UPDATE (jedyna ochrona przed podwójnym checkout),
    potem rezerwacje, kupon i sesja w bramce. Każdy błąd po drodze = kompensacja
    w odwrotnej kolejności i powrót koszyka do open.
    Rezerwacje zostają trzymane aż do potwierdzenia płatności albo wygaśnięcia.
    """

    def __init__(self, db: Session, payment_client: PaymentClient):
        self.db = db
        self.carts = CartRepo(db)
        self.discounts = DiscountRepo(db)
        self.inventory = InventoryRepo(db)
        self.reservations = ReservationService(db)
        self.payment_client = payment_client

    def checkout(self, store: StoreModel, cart_id: str, request: Dict[str, Any]) -> Dict[str, Any]:
        if not request.get("success_url"):
            raise InvalidRequestError("success_url is required")
        if not request.get("cancel_url"):
            raise InvalidRequestError("cancel_url is required")
        if not store.gateway_secret_key:
            raise InvalidRequestError("Payment gateway not connected for this store")

        # 1. open -> checked_out, tylko jeden request może wygrać
        rowcount = self.carts.update_cart(
            cart_id, {"status": "checked_out"}, store_id=store.id, status="open"
        )
        if rowcount == 0:
            cart = self.carts.get_cart(store.id, cart_id)
            if not cart:
                raise NotFoundError("Cart not found")
            raise ConflictError("Cart is not open")

        logger.info(f"Checkout started for cart {cart_id}")

        cart = self.carts.get_cart(store.id, cart_id)
        amount_before = cart.discount_amount_cents

        # 2. pusty koszyk
        items = self.carts.get_cart_items(cart_id)
        if not items:
            self._revert_to_open(cart_id, amount_before)
            raise InvalidRequestError("Cart is empty")

        discount = None
        if cart.discount_id:
            discount = self.discounts.get_discount(store.id, cart.discount_id)
            if discount is None:
                #rabat usunięty, czyścimy referencję
                self.carts.clear_discount(cart_id)

        # 3. rezerwacje (koordynator sam sprząta swoje częściowe zmiany)
        try:
            reservation = self.reservations.reserve(cart, items, discount)
        except Exception:
            self._revert_to_open(cart_id, amount_before)
            raise

        # od tego zapisu sweep wie, że koszyk trzyma rezerwacje
        if self.carts.mark_reserved(
            cart_id, reservation.discount_usage_reserved, reservation.discount_amount_cents
        ) == 0:
            # sweep wygasił koszyk przed zapisem flagi, więc niczego nie zwolnił
            logger.warning(f"Cart {cart_id} expired during reservation, releasing own reservations")
            self.reservations.release(reservation)
            raise ConflictError("Cart is no longer checked out")

        # 4. rabat w formie zrozumiałej dla bramki
        try:
            coupon_id = self._gateway_coupon(
                store.gateway_secret_key, reservation.discount, reservation.discount_amount_cents
            )
        except Exception as e:
            logger.error(f"Failed to create gateway coupon for cart {cart_id}: {e}")
            self._compensate(reservation, amount_before)
            raise InvalidRequestError(
                "Failed to apply discount. Please try again or remove the discount and proceed."
            ) from e

        params = build_session_params(cart, items, reservation.discount, coupon_id, request)

        # 5. sesja w bramce (blokujący round trip, stan już zapisany w bazie)
        try:
            session = self.payment_client.create_checkout_session(store.gateway_secret_key, params)
            session_id, checkout_url = session["id"], session["url"]
        except Exception as e:
            logger.error(f"Payment session creation failed for cart {cart_id}: {e!r}")
            self._compensate(reservation, amount_before)
            raise PaymentGatewayError() from e

        # 6. zapis sesji, status zostaje checked_out
        rowcount = self.carts.update_cart(
            cart_id,
            {
                "payment_session_id": session_id,
                "discount_amount_cents": reservation.discount_amount_cents,
            },
            status="checked_out",
        )
        if rowcount == 0:
            # koszyk wygasł w trakcie; zwalnia ten, kto pierwszy przejmie flagę
            if self.carts.claim_reservation(cart_id):
                self.reservations.release(reservation)
            logger.warning(f"Cart {cart_id} expired while creating session {session_id}")
            raise ConflictError("Cart is no longer checked out")

        logger.info(f"Cart {cart_id} checked out, session {session_id}")

        return {"checkout_url": checkout_url, "session_id": session_id}

    def handle_payment_event(self, session_id: str, status: str) -> Dict[str, Any]:
        if status == "succeeded":
            return self.finalize_payment(session_id)
        return self.release_payment_session(session_id)

    def finalize_payment(self, session_id: str) -> Dict[str, Any]:
        """
        Płatność udana: rezerwacje -> trwały rozchód, zapis użycia rabatu.
        Powtórzone zdarzenie nic nie robi (warunek finalized_at IS NULL).
        """
        if self.carts.mark_finalized(session_id, utcnow()) == 0:
            cart = self.carts.get_cart_by_session(session_id)
            if not cart:
                raise NotFoundError("No cart for payment session")
            if cart.finalized_at is not None:
                logger.info(f"Duplicate confirmation for session {session_id}, ignoring")
                return {"cart_id": cart.id, "result": "already_processed"}
            logger.error(
                f"Payment succeeded for session {session_id} but cart {cart.id} "
                f"is {cart.status}, reservations were already released"
            )
            return {"cart_id": cart.id, "result": "not_checked_out"}

        cart = self.carts.get_cart_by_session(session_id)
        for item in self.carts.get_cart_items(cart.id):
            if not self.inventory.commit(cart.store_id, item.sku, item.qty):
                logger.error(f"Cart {cart.id}: could not commit {item.qty} x {item.sku}")

        if cart.discount_id:
            self.discounts.record_usage(cart.discount_id, cart.customer_email, cart.id)

        logger.info(f"Payment finalized for cart {cart.id}")
        return {"cart_id": cart.id, "result": "finalized"}

    def release_payment_session(self, session_id: str) -> Dict[str, Any]:
        if self.carts.expire_checked_out(session_id=session_id) == 0:
            cart = self.carts.get_cart_by_session(session_id)
            if not cart:
                raise NotFoundError("No cart for payment session")
            return {"cart_id": cart.id, "result": "already_processed"}

        cart = self.carts.get_cart_by_session(session_id)
        released = self._release_held(cart)
        return {"cart_id": cart.id, "result": "released" if released else "expired"}

    def release_checkout(self, store_id: str, cart_id: str) -> Dict[str, Any]:
        """
        Porzucony checkout (wywoływane przez zewnętrzny sweep).
        Koszyk w trakcie checkout (przed zapisem rezerwacji) jest tylko wygaszany,
        rezerwacje oddaje wtedy sam checkout.
        """
        if self.carts.expire_checked_out(cart_id=cart_id, store_id=store_id) == 0:
            cart = self.carts.get_cart(store_id, cart_id)
            if not cart:
                raise NotFoundError("Cart not found")
            return {"cart_id": cart.id, "result": "not_held"}

        cart = self.carts.get_cart(store_id, cart_id)
        released = self._release_held(cart)
        return {"cart_id": cart.id, "result": "released" if released else "expired"}

    # helpers
    def _gateway_coupon(
        self, api_key: str, discount: DiscountModel | None, amount_cents: int
    ) -> str | None:
        if discount is None or amount_cents <= 0:
            return None

        # cap zależy od subtotalu, więc zapisanego kuponu nie można użyć
        capped = is_capped_percentage(discount)
        if discount.gateway_coupon_id and not capped:
            return discount.gateway_coupon_id

        params: Dict[str, Any] = {
            "duration": "once",
            "metadata": {"merchant_discount_id": discount.id},
        }
        if capped:
            params.update(amount_off=amount_cents, currency=CURRENCY)
        elif discount.type == PERCENTAGE:
            params.update(percent_off=discount.value)
        else:
            params.update(amount_off=discount.value, currency=CURRENCY)

        coupon = self.payment_client.create_coupon(api_key, params)
        return coupon["id"]

    def _compensate(self, reservation: Reservation, amount_before: int) -> None:
        if self.carts.claim_reservation(reservation.cart_id):
            self.reservations.release(reservation)
        else:
            logger.warning(f"Cart {reservation.cart_id}: reservations already released by sweep")
        self._revert_to_open(reservation.cart_id, amount_before)

    def _revert_to_open(self, cart_id: str, amount_before: int) -> None:
        if self.carts.revert_to_open(cart_id, amount_before):
            logger.info(f"Cart {cart_id} reverted to open")

    def _release_held(self, cart: CartModel) -> bool:
        if self.carts.claim_reservation(cart.id) == 0:
            logger.info(f"Cart {cart.id} expired without held reservations")
            return False

        items = self.carts.get_cart_items(cart.id)
        for item in reversed(items):
            self.inventory.release(cart.store_id, item.sku, item.qty)
        if cart.discount_usage_reserved and cart.discount_id:
            self.discounts.release_usage(cart.discount_id)
        logger.info(f"Released held reservations for cart {cart.id}")
        return True
