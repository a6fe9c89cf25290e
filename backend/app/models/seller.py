from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlmodel import Field

from app.models.base import IntIDModel, JSONDict, TimestampedModel


class Seller(IntIDModel, TimestampedModel, table=True):
    __tablename__ = "sellers"

    name: str | None = Field(default=None)
    email: str | None = Field(default=None, index=True)
    phone: str | None = Field(default=None, max_length=32)
    tax_id: str | None = Field(default=None, max_length=18, index=True)

    # Dados da loja na plataforma externa (business_id, email, name, phone...)
    store_info: dict | None = Field(default=None, sa_type=JSONDict)

    address: str | None = Field(default=None)
    address_number: str | None = Field(default=None, max_length=16)
    province: str | None = Field(default=None)
    postal_code: str | None = Field(default=None, max_length=9)

    payments_customer_id: str | None = Field(default=None, index=True, max_length=64)
    subaccount_api_key: str | None = Field(default=None)
    app_status: str | None = Field(default=None, max_length=32)

    payments_status: str | None = Field(default=None, max_length=32)
    payments_last_update: datetime | None = Field(default=None)
    payments_next_due: date | None = Field(default=None)

    def store_data(self) -> dict[str, Any]:
        return JSONDict._coerce(self.store_info) or {}

    def store_name(self) -> str | None:
        name = self.store_data().get("name")
        if isinstance(name, dict):
            return name.get("pt") or next(iter(name.values()), None)
        return name
