# checkout_engine/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal, Any
from datetime import datetime


class CreateCartIn(BaseModel):
    """Tworzenie koszyka. Email walidowany w serwisie (invalid_request)."""

    customer_email: str = Field(..., description="Email klienta")


class ItemIn(BaseModel):
    sku: str = Field(..., min_length=1)
    qty: int = Field(..., description="Ilosc (musi byc > 0)")


class SetItemsIn(BaseModel):
    """Pełna lista pozycji, zastępuje obecną zawartość koszyka."""

    items: List[ItemIn] = Field(..., min_length=1)


class ApplyDiscountIn(BaseModel):
    code: str = Field(..., min_length=1)


class CheckoutIn(BaseModel):
    success_url: str = Field(..., min_length=1)
    cancel_url: str = Field(..., min_length=1)
    collect_shipping: bool = False
    shipping_countries: List[str] | None = None
    # przekazywane do bramki bez zmian
    shipping_options: List[dict[str, Any]] | None = None


class CartItemOut(BaseModel):
    sku: str
    title: str
    qty: int
    unit_price_cents: int


class DiscountInfoOut(BaseModel):
    code: str | None
    type: str
    amount_cents: int


class TotalsOut(BaseModel):
    subtotal_cents: int
    discount_cents: int
    shipping_cents: int = 0
    tax_cents: int = 0
    total_cents: int


class CartOut(BaseModel):
    id: str
    status: str
    currency: str
    customer_email: str
    items: List[CartItemOut]
    discount: DiscountInfoOut | None = None
    totals: TotalsOut
    expires_at: datetime | None = None
    payment_session_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class DiscountAppliedOut(BaseModel):
    discount: DiscountInfoOut | None
    totals: TotalsOut


class CheckoutOut(BaseModel):
    checkout_url: str
    session_id: str


class DiscountCreateIn(BaseModel):
    code: str | None = None
    type: Literal["percentage", "fixed_amount"]
    value: int = Field(..., ge=0)
    min_purchase_cents: int = Field(0, ge=0)
    max_discount_cents: int | None = Field(None, ge=0)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(None, ge=0)
    usage_limit_per_customer: int | None = Field(None, ge=0)


class DiscountUpdateIn(BaseModel):
    """PATCH - tylko pola ustawione w body są zmieniane (exclude_unset)."""

    status: Literal["active", "inactive"] | None = None
    code: str | None = None
    value: int | None = Field(None, ge=0)
    min_purchase_cents: int | None = Field(None, ge=0)
    max_discount_cents: int | None = Field(None, ge=0)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(None, ge=0)
    usage_limit_per_customer: int | None = Field(None, ge=0)


class DiscountOut(BaseModel):
    id: str
    code: str | None
    type: str
    value: int
    status: str
    min_purchase_cents: int
    max_discount_cents: int | None
    starts_at: datetime | None
    expires_at: datetime | None
    usage_limit: int | None
    usage_limit_per_customer: int | None
    usage_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DiscountListOut(BaseModel):
    items: List[DiscountOut]


class InventoryOut(BaseModel):
    sku: str
    on_hand: int
    reserved: int
    available: int

    model_config = ConfigDict(from_attributes=True)


class InventoryAdjustIn(BaseModel):
    delta: int


class PaymentEventIn(BaseModel):
    """Zdarzenie od bramki (weryfikacja podpisu jest poza serwisem)."""

    session_id: str = Field(..., min_length=1)
    status: Literal["succeeded", "failed", "expired"]


class PaymentEventOut(BaseModel):
    cart_id: str | None = None
    result: str
