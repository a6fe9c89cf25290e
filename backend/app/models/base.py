from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


class JSONDict(TypeDecorator):
    """Coluna JSON que aceita dict ou string JSON e sempre devolve dict."""

    impl = JSON
    cache_ok = True

    @staticmethod
    def _coerce(value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8")
        if isinstance(value, str):
            if not value.strip():
                return {}
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        return dict(value) if isinstance(value, dict) else {}

    def process_bind_param(self, value: Any, dialect) -> dict[str, Any] | None:
        return self._coerce(value)

    def process_result_value(self, value: Any, dialect) -> dict[str, Any] | None:
        return self._coerce(value)


class TimestampedModel(SQLModel):
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime | None = Field(default=None, nullable=True)


class IntIDModel(SQLModel):
    id: int | None = Field(default=None, primary_key=True)
