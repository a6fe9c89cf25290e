from sqlmodel import Field

from app.models.base import IntIDModel, TimestampedModel


class Shopper(IntIDModel, TimestampedModel, table=True):
    __tablename__ = "shoppers"

    seller_id: int | None = Field(default=None, foreign_key="sellers.id", index=True)
    name: str | None = Field(default=None)
    email: str | None = Field(default=None, index=True)
    tax_id: str | None = Field(default=None, max_length=18, index=True)
    mobile_phone: str | None = Field(default=None, max_length=32)

    address: str | None = Field(default=None)
    address_number: str | None = Field(default=None, max_length=16)
    province: str | None = Field(default=None)
    postal_code: str | None = Field(default=None, max_length=9)

    payments_customer_id: str | None = Field(default=None, index=True, max_length=64)
