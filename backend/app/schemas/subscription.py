from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.schemas.common import Timestamped


class SubscriptionRead(Timestamped):
    id: int
    external_id: str | None = None
    plan_name: str
    value: float
    status: str
    cycle: str
    billing_type: str
    next_due_date: date | None = None
    start_date: date | None = None
    end_date: datetime | None = None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("meta_data", "metadata"),
    )


class SellerSubscriptionRead(SubscriptionRead):
    seller_id: int
    features: dict[str, Any] | None = None


class ShopperSubscriptionRead(SubscriptionRead):
    shopper_id: int
    order_id: int


# ---------------------------------------------------------------------------
# Entradas da API
# ---------------------------------------------------------------------------
class BillingInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    billingType: str | None = None
    cpfCnpj: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    mobilePhone: str | None = None
    postalCode: str | None = None
    addressNumber: str | None = None
    creditCard: dict[str, Any] | None = None
    creditCardToken: str | None = None
    creditCardHolderInfo: dict[str, Any] | None = None


class SellerSubscriptionCreate(BaseModel):
    plan_name: str | None = None
    value: float | None = None
    cycle: str | None = None
    billing_type: str | None = None
    features: dict[str, Any] | None = None
    billing_info: BillingInfo | None = None


class SellerSubscriptionRetry(BaseModel):
    billing_type: str
    billing_info: BillingInfo | None = None


class SellerSubscriptionCancel(BaseModel):
    reason: str | None = None


class ShopperSubscriptionCreate(BaseModel):
    plan_name: str | None = None
    value: float | None = None
    cycle: str | None = None
    billing_type: str | None = None
    next_due_date: date | None = None
    end_date: date | None = None
    max_payments: int | None = None
    billing_info: BillingInfo | None = None


class SubscriptionUpdate(BaseModel):
    plan_name: str | None = None
    value: float | None = None
    cycle: str | None = None
    billing_type: str | None = None
    next_due_date: date | None = None
    end_date: date | None = None
    max_payments: int | None = None
    status: str | None = None
