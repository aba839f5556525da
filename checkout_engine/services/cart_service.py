import re
from datetime import timedelta
from typing import Dict, Any, Iterable
from sqlalchemy.orm import Session
from checkout_engine.data.models.cart import CartModel
from checkout_engine.data.models.cart_item import CartItemModel
from checkout_engine.domain.errors import (
    ConflictError,
    InsufficientInventoryError,
    InvalidRequestError,
    NotFoundError,
)
from checkout_engine.repos.cart_repo import CartRepo
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.repos.inventory_repo import InventoryRepo
from checkout_engine.services.discount_rules import calculate_discount, normalize_code, validate_discount
from checkout_engine.utils.clock import utcnow
from checkout_engine.utils.settings import CART_TTL_SECONDS
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(value))


def subtotal_of(items: Iterable[CartItemModel]) -> int:
    return sum(i.unit_price_cents * i.qty for i in items)


class CartService:
    """
    Koszyk: commands (create, set_items, apply/remove discount) i query (get).
    Pozycje można zmieniać tylko gdy status = open.
    Sumy zawsze liczone od nowa z aktualnych pozycji w bazie.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.inventory = InventoryRepo(db)
        self.discounts = DiscountRepo(db)

    #query - odczyt
    def get_cart(self, store_id: str, cart_id: str) -> Dict[str, Any]:
        cart = self._require_cart(store_id, cart_id)
        items = self.repo.get_cart_items(cart_id)
        return self._cart_view(cart, items)

    def compute_totals(self, cart: CartModel, items: list[CartItemModel]):
        """Zwraca (discount_info | None, totals). Nieważny rabat = 0, bez zapisu."""
        subtotal = subtotal_of(items)
        discount_cents = 0
        discount_info = None

        if cart.discount_id:
            discount = self.discounts.get_discount(cart.store_id, cart.discount_id)
            if discount:
                try:
                    validate_discount(self.db, discount, subtotal, cart.customer_email)
                except InvalidRequestError:
                    discount = None
            if discount:
                discount_cents = calculate_discount(discount, subtotal)
                discount_info = {
                    "code": discount.code,
                    "type": discount.type,
                    "amount_cents": discount_cents,
                }

        return discount_info, _totals(subtotal, discount_cents)

    #commands
    def create_cart(self, store_id: str, customer_email: str) -> Dict[str, Any]:
        if not is_valid_email(customer_email):
            raise InvalidRequestError("A valid customer_email is required")

        expires = utcnow() + timedelta(seconds=CART_TTL_SECONDS)
        created = self.repo.create_cart(
            CartModel(
                store_id=store_id,
                customer_email=customer_email,
                currency="USD",
                status="open",
                expires_at=expires,
            )
        )

        logger.info(f"Created cart {created.id} for store {store_id}")
        return self._cart_view(created, [])

    def set_items(self, store_id: str, cart_id: str, items: list[dict]) -> Dict[str, Any]:
        if not items:
            raise InvalidRequestError("items array is required")

        cart = self._require_cart(store_id, cart_id)
        if cart.status != "open":
            raise ConflictError("Cart is not open")

        # cały batch walidowany zanim cokolwiek zmienimy
        requested: dict[str, int] = {}
        for line in items:
            sku = line.get("sku")
            qty = line.get("qty")
            if not sku or not isinstance(qty, int) or qty < 1:
                raise InvalidRequestError("Each item needs sku and qty > 0")
            requested[sku] = requested.get(sku, 0) + qty

        validated: list[CartItemModel] = []
        for sku, qty in requested.items():
            variant = self.inventory.get_variant(store_id, sku)
            if not variant:
                raise NotFoundError(f"SKU not found: {sku}")
            if variant.status != "active":
                raise InvalidRequestError(f"SKU not active: {sku}")

            #niewiążący pre-check, rezerwacja dopiero przy checkout
            if self.inventory.available(store_id, sku) < qty:
                raise InsufficientInventoryError(sku)

            validated.append(
                CartItemModel(
                    sku=sku,
                    title=variant.title,
                    qty=qty,
                    unit_price_cents=variant.price_cents,
                )
            )

        if not self.repo.replace_items(store_id, cart_id, validated):
            raise ConflictError("Cart is not open")

        logger.info(f"Replaced items of cart {cart_id}: {len(validated)} line(s)")

        self.repo.refresh(cart)
        current = self.repo.get_cart_items(cart_id)
        if cart.discount_id:
            self._revalidate_discount(cart, current)

        return self._cart_view(cart, current)

    def apply_discount(self, store_id: str, cart_id: str, code: str) -> Dict[str, Any]:
        if not code or not isinstance(code, str) or not code.strip():
            raise InvalidRequestError("code is required")

        cart = self._require_cart(store_id, cart_id)
        if cart.status != "open":
            raise ConflictError("Cart is not open")

        discount = self.discounts.get_by_code(store_id, normalize_code(code))
        if not discount:
            raise NotFoundError("Discount code not found")

        items = self.repo.get_cart_items(cart_id)
        if not items:
            raise InvalidRequestError("Cart is empty")

        subtotal = subtotal_of(items)
        validate_discount(self.db, discount, subtotal, cart.customer_email)
        amount = calculate_discount(discount, subtotal)

        # tylko podpinamy, usage rezerwowany dopiero przy checkout
        rowcount = self.repo.update_cart(
            cart_id,
            {
                "discount_id": discount.id,
                "discount_code": discount.code,
                "discount_amount_cents": amount,
            },
            store_id=store_id,
            status="open",
        )
        if rowcount == 0:
            raise ConflictError("Cart is not open")

        logger.info(f"Applied discount {discount.code} to cart {cart_id}: {amount} cents")

        return {
            "discount": {"code": discount.code, "type": discount.type, "amount_cents": amount},
            "totals": _totals(subtotal, amount),
        }

    def remove_discount(self, store_id: str, cart_id: str) -> Dict[str, Any]:
        if self.repo.clear_discount_if_open(store_id, cart_id) == 0:
            cart = self._require_cart(store_id, cart_id)
            raise ConflictError(f"Cart is not open (status: {cart.status})")

        logger.info(f"Removed discount from cart {cart_id}")

        items = self.repo.get_cart_items(cart_id)
        return {"discount": None, "totals": _totals(subtotal_of(items), 0)}

    # helpers
    def _require_cart(self, store_id: str, cart_id: str) -> CartModel:
        cart = self.repo.get_cart(store_id, cart_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    def _revalidate_discount(self, cart: CartModel, items: list[CartItemModel]) -> None:
        subtotal = subtotal_of(items)
        discount = self.discounts.get_discount(cart.store_id, cart.discount_id)
        if discount:
            try:
                validate_discount(self.db, discount, subtotal, cart.customer_email)
            except InvalidRequestError as e:
                logger.info(f"Detaching discount from cart {cart.id}: {e.message}")
                discount = None

        if discount is None:
            # nieważny albo usunięty - po cichu odpinamy
            self.repo.clear_discount(cart.id)
        else:
            self.repo.update_cart(
                cart.id, {"discount_amount_cents": calculate_discount(discount, subtotal)}
            )
        self.repo.refresh(cart)

    def _cart_view(self, cart: CartModel, items: list[CartItemModel]) -> Dict[str, Any]:
        discount_info, totals = self.compute_totals(cart, items)

        #dict przekształcany w jsona
        return {
            "id": cart.id,
            "status": cart.status,
            "currency": cart.currency,
            "customer_email": cart.customer_email,
            "items": [
                {
                    "sku": i.sku,
                    "title": i.title,
                    "qty": i.qty,
                    "unit_price_cents": i.unit_price_cents,
                }
                for i in items
            ],
            "discount": discount_info,
            "totals": totals,
            "expires_at": cart.expires_at,
            "payment_session_id": cart.payment_session_id,
        }


def _totals(subtotal_cents: int, discount_cents: int) -> Dict[str, int]:
    # shipping i tax liczy bramka, tu zawsze 0
    return {
        "subtotal_cents": subtotal_cents,
        "discount_cents": discount_cents,
        "shipping_cents": 0,
        "tax_cents": 0,
        "total_cents": subtotal_cents - discount_cents,
    }
