from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field

from app.models.base import IntIDModel, JSONDict, TimestampedModel


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class BillingCycle(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    BIMONTHLY = "BIMONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUALLY = "SEMIANNUALLY"
    YEARLY = "YEARLY"


class BillingType(str, Enum):
    PIX = "PIX"
    BOLETO = "BOLETO"
    CREDIT_CARD = "CREDIT_CARD"


class SubscriptionFields(IntIDModel, TimestampedModel):
    external_id: str | None = Field(default=None, index=True, max_length=64)
    plan_name: str
    value: float
    status: str = Field(default=SubscriptionStatus.PENDING.value, max_length=16, index=True)
    cycle: str = Field(default=BillingCycle.MONTHLY.value, max_length=16)
    billing_type: str = Field(default=BillingType.PIX.value, max_length=16)
    next_due_date: date | None = Field(default=None)
    start_date: date | None = Field(default=None)
    end_date: datetime | None = Field(default=None)
    meta_data: dict | None = Field(default=None, sa_type=JSONDict)
    deleted_at: datetime | None = Field(default=None, index=True)


class SellerSubscription(SubscriptionFields, table=True):
    __tablename__ = "seller_subscriptions"

    seller_id: int = Field(foreign_key="sellers.id", index=True)
    features: dict | None = Field(default=None, sa_type=JSONDict)


class ShopperSubscription(SubscriptionFields, table=True):
    __tablename__ = "shopper_subscriptions"
    __table_args__ = (
        # Uma assinatura não excluída por pedido
        Index(
            "uq_shopper_subscriptions_order_active",
            "order_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    shopper_id: int = Field(foreign_key="shoppers.id", index=True)
    order_id: int = Field(foreign_key="orders.id")
