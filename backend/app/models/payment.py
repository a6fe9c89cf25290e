from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Literal, Union

from sqlmodel import Field

from app.models.base import IntIDModel, JSONDict, TimestampedModel


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    OVERDUE = "overdue"
    REFUNDED = "refunded"
    CANCELED = "canceled"
    FAILED = "failed"


class PayableType(str, Enum):
    SELLER_SUBSCRIPTION = "seller_subscription"
    SHOPPER_SUBSCRIPTION = "shopper_subscription"


@dataclass(frozen=True)
class SellerSubscriptionRef:
    id: int
    kind: Literal[PayableType.SELLER_SUBSCRIPTION] = PayableType.SELLER_SUBSCRIPTION


@dataclass(frozen=True)
class ShopperSubscriptionRef:
    id: int
    kind: Literal[PayableType.SHOPPER_SUBSCRIPTION] = PayableType.SHOPPER_SUBSCRIPTION


PayableRef = Union[SellerSubscriptionRef, ShopperSubscriptionRef]


class Payment(IntIDModel, TimestampedModel, table=True):
    __tablename__ = "payments"

    external_id: str = Field(unique=True, index=True, max_length=64)
    payable_type: str = Field(max_length=32)
    payable_id: int = Field(index=True)

    status: str = Field(default=PaymentStatus.PENDING.value, max_length=16)
    value: float | None = Field(default=None)
    net_value: float | None = Field(default=None)
    billing_type: str | None = Field(default=None, max_length=16)
    payment_date: date | None = Field(default=None)
    due_date: date | None = Field(default=None)
    invoice_url: str | None = Field(default=None)
    description: str | None = Field(default=None)
    transaction_data: dict | None = Field(default=None, sa_type=JSONDict)

    @property
    def payable(self) -> PayableRef:
        if self.payable_type == PayableType.SELLER_SUBSCRIPTION.value:
            return SellerSubscriptionRef(self.payable_id)
        if self.payable_type == PayableType.SHOPPER_SUBSCRIPTION.value:
            return ShopperSubscriptionRef(self.payable_id)
        raise ValueError(f"Tipo de pagável desconhecido: {self.payable_type}")

    def assign_payable(self, ref: PayableRef) -> None:
        self.payable_type = ref.kind.value
        self.payable_id = ref.id
