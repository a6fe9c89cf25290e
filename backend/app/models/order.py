from __future__ import annotations

from datetime import date

from sqlmodel import Field

from app.models.base import IntIDModel, TimestampedModel


class Product(IntIDModel, TimestampedModel, table=True):
    __tablename__ = "products"

    seller_id: int | None = Field(default=None, foreign_key="sellers.id", index=True)
    name: str
    price: float | None = Field(default=None)
    cycle: str | None = Field(default=None, max_length=16)
    subscription_price: float | None = Field(default=None)
    subscription_discount_percent: float | None = Field(default=None)

    def get_subscription_price(self) -> float | None:
        """Preço recorrente: preço cheio com o desconto de assinatura aplicado."""
        if self.price is None or not self.subscription_discount_percent:
            return None
        discounted = self.price * (1 - self.subscription_discount_percent / 100)
        return round(discounted, 2)


class Order(IntIDModel, TimestampedModel, table=True):
    __tablename__ = "orders"

    seller_id: int | None = Field(default=None, foreign_key="sellers.id", index=True)
    shopper_id: int | None = Field(default=None, foreign_key="shoppers.id", index=True)
    product_id: int | None = Field(default=None, foreign_key="products.id")

    value: float | None = Field(default=None)
    cycle: str | None = Field(default=None, max_length=16)
    billing_type: str | None = Field(default=None, max_length=16)
    next_due_date: date | None = Field(default=None)

    external_id: str | None = Field(default=None, max_length=64, index=True)
    status: str = Field(default="pending", max_length=32)
