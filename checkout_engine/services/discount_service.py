# checkout_engine/services/discount_service.py
from typing import Dict, Any

import requests
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.data.models.store import StoreModel
from checkout_engine.domain.errors import ConflictError, InvalidRequestError, NotFoundError
from checkout_engine.repos.discount_repo import DiscountRepo
from checkout_engine.services.discount_rules import PERCENTAGE, FIXED_AMOUNT, is_capped_percentage, normalize_code
from checkout_engine.services.payment_client import PaymentClient
from checkout_engine.utils.clock import as_utc
from checkout_engine.utils.settings import CURRENCY
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)

# zmiana któregoś z tych pól = ponowna synchronizacja z bramką
_GATEWAY_FIELDS = {"code", "value", "max_discount_cents", "expires_at", "status"}


class DiscountService:
    """
    Administracja rabatami sklepu.
    Sklep jest źródłem prawdy, kupony w bramce są tylko pomocnicze:
    błąd synchronizacji jest logowany, ale nie blokuje zapisu rabatu.
    """

    def __init__(self, db: Session, payment_client: PaymentClient):
        self.repo = DiscountRepo(db)
        self.payment_client = payment_client

    #query
    def list_discounts(self, store: StoreModel) -> list[DiscountModel]:
        return self.repo.list_discounts(store.id)

    def get_discount(self, store: StoreModel, discount_id: str) -> DiscountModel:
        discount = self.repo.get_discount(store.id, discount_id)
        if not discount:
            raise NotFoundError("Discount not found")
        return discount

    #commands
    def create_discount(self, store: StoreModel, payload: Dict[str, Any]) -> DiscountModel:
        dtype = payload.get("type")
        if dtype not in (PERCENTAGE, FIXED_AMOUNT):
            raise InvalidRequestError("type must be percentage or fixed_amount")
        _check_value(dtype, payload.get("value"))

        code = normalize_code(payload["code"]) if payload.get("code") else None
        if code and self.repo.get_by_code(store.id, code):
            raise ConflictError(f"Discount code {code} already exists")

        discount = self.repo.create_discount(
            DiscountModel(
                store_id=store.id,
                code=code,
                type=dtype,
                value=payload["value"],
                status="active",
                min_purchase_cents=payload.get("min_purchase_cents") or 0,
                max_discount_cents=payload.get("max_discount_cents") or None,
                starts_at=as_utc(payload.get("starts_at")),
                expires_at=as_utc(payload.get("expires_at")),
                usage_limit=payload.get("usage_limit"),
                usage_limit_per_customer=payload.get("usage_limit_per_customer"),
                usage_count=0,
            )
        )
        logger.info(f"Created discount {discount.id} ({discount.code}) for store {store.id}")

        if store.gateway_secret_key:
            self._sync(store, discount)
        return discount

    def update_discount(
        self, store: StoreModel, discount_id: str, changes: Dict[str, Any]
    ) -> DiscountModel:
        existing = self.get_discount(store, discount_id)
        updates: Dict[str, Any] = {}

        if "status" in changes:
            if changes["status"] not in ("active", "inactive"):
                raise InvalidRequestError("status must be active or inactive")
            updates["status"] = changes["status"]

        if "code" in changes:
            code = normalize_code(changes["code"]) if changes["code"] else None
            if code and code != existing.code:
                duplicate = self.repo.get_by_code(store.id, code)
                if duplicate and duplicate.id != existing.id:
                    raise ConflictError(f"Discount code {code} already exists")
            updates["code"] = code

        if "value" in changes:
            _check_value(existing.type, changes["value"])
            updates["value"] = changes["value"]

        if "min_purchase_cents" in changes:
            updates["min_purchase_cents"] = changes["min_purchase_cents"] or 0
        if "max_discount_cents" in changes:
            updates["max_discount_cents"] = changes["max_discount_cents"] or None
        if "starts_at" in changes:
            updates["starts_at"] = as_utc(changes["starts_at"])
        if "expires_at" in changes:
            updates["expires_at"] = as_utc(changes["expires_at"])

        if "usage_limit" in changes:
            limit = changes["usage_limit"]
            if limit is not None and limit < existing.usage_count:
                raise InvalidRequestError(
                    f"usage_limit cannot be lower than current usage ({existing.usage_count})"
                )
            updates["usage_limit"] = limit
        if "usage_limit_per_customer" in changes:
            updates["usage_limit_per_customer"] = changes["usage_limit_per_customer"]

        if updates:
            try:
                self.repo.update_fields(store.id, discount_id, updates)
            except IntegrityError as e:
                # usage_count urósł równolegle ponad nowy limit
                self.repo.db.rollback()
                raise ConflictError("Discount changed concurrently, please retry") from e
            logger.info(f"Updated discount {discount_id}: {sorted(updates)}")

        discount = self.get_discount(store, discount_id)
        self.repo.db.refresh(discount)

        if store.gateway_secret_key and _GATEWAY_FIELDS & updates.keys():
            self._sync(store, discount)
        return discount

    def deactivate_discount(self, store: StoreModel, discount_id: str) -> Dict[str, Any]:
        self.get_discount(store, discount_id)
        self.repo.update_fields(store.id, discount_id, {"status": "inactive"})
        logger.info(f"Deactivated discount {discount_id}")
        return {"ok": True}

    # gateway sync
    def sync_to_gateway(self, api_key: str, discount: DiscountModel):
        """
        Zwraca (coupon_id, promotion_code_id, error).
        Procentowy z capem nie dostaje kuponu - tworzony przy checkout z wyliczoną kwotą.
        """
        if is_capped_percentage(discount):
            return None, None, None

        try:
            params: Dict[str, Any] = {
                "duration": "once",
                "metadata": {"merchant_discount_id": discount.id},
            }
            if discount.type == PERCENTAGE:
                params["percent_off"] = discount.value
            else:
                params.update(amount_off=discount.value, currency=CURRENCY)
            if discount.expires_at:
                params["redeem_by"] = int(as_utc(discount.expires_at).timestamp())

            # bramka nie wspiera edycji kuponu - usuń i stwórz od nowa
            if discount.gateway_coupon_id:
                try:
                    self.payment_client.delete_coupon(api_key, discount.gateway_coupon_id)
                except requests.RequestException as e:
                    logger.info(f"Old coupon {discount.gateway_coupon_id} not deleted: {e}")

            coupon_id = self.payment_client.create_coupon(api_key, params)["id"]

            promotion_code_id = discount.gateway_promotion_code_id
            if discount.code and discount.status != "inactive":
                if promotion_code_id:
                    self._deactivate_promotion_code(api_key, promotion_code_id)
                promotion_code_id = self.payment_client.create_promotion_code(
                    api_key,
                    {
                        "coupon": coupon_id,
                        "code": discount.code.upper(),
                        "active": True,
                        "metadata": {"merchant_discount_id": discount.id},
                    },
                )["id"]
            elif promotion_code_id:
                # zostawiamy id jako referencję do wyłączonego kodu
                self._deactivate_promotion_code(api_key, promotion_code_id)

            return coupon_id, promotion_code_id, None
        except requests.RequestException as e:
            return discount.gateway_coupon_id, discount.gateway_promotion_code_id, str(e)

    def _sync(self, store: StoreModel, discount: DiscountModel) -> None:
        coupon_id, promotion_code_id, error = self.sync_to_gateway(store.gateway_secret_key, discount)
        if error:
            logger.warning(f"Discount {discount.id} saved but gateway sync failed: {error}")

        if (
            coupon_id != discount.gateway_coupon_id
            or promotion_code_id != discount.gateway_promotion_code_id
        ):
            self.repo.update_fields(
                store.id,
                discount.id,
                {"gateway_coupon_id": coupon_id, "gateway_promotion_code_id": promotion_code_id},
            )
            self.repo.db.refresh(discount)

    def _deactivate_promotion_code(self, api_key: str, promotion_code_id: str) -> None:
        try:
            self.payment_client.deactivate_promotion_code(api_key, promotion_code_id)
        except requests.RequestException as e:
            logger.info(f"Promotion code {promotion_code_id} not deactivated: {e}")


def _check_value(dtype: str, value) -> None:
    if not isinstance(value, int) or value < 0:
        raise InvalidRequestError("value must be a non-negative number")
    if dtype == PERCENTAGE and value > 100:
        raise InvalidRequestError("percentage value must be between 0 and 100")
