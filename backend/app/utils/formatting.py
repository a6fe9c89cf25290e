from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

CYCLES = (
    "WEEKLY",
    "BIWEEKLY",
    "MONTHLY",
    "BIMONTHLY",
    "QUARTERLY",
    "SEMIANNUALLY",
    "YEARLY",
)

_BR_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


class InvalidDateError(ValueError):
    """Data não reconhecida pelo formatador."""


def normalize_cycle(value: Any) -> str | None:
    """Retorna o ciclo canônico (WEEKLY…YEARLY) ou None se não reconhecido."""
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip().upper()
    return candidate if candidate in CYCLES else None


def format_date(value: Any) -> str:
    """Formata datas para ``YYYY-MM-DD``.

    Aceita ``date``/``datetime``, strings ISO 8601 e strings no padrão brasileiro
    ``DD/MM/YYYY``. Qualquer outra entrada gera ``InvalidDateError``.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(f"Data inválida: {value!r}")

    raw = value.strip()
    match = _BR_DATE.match(raw)
    try:
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day).isoformat()
        if len(raw) == 10:
            return date.fromisoformat(raw).isoformat()
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date().isoformat()
    except ValueError as exc:
        raise InvalidDateError(f"Data inválida: {value!r}") from exc


def parse_date(value: Any) -> date | None:
    """Versão tolerante usada na leitura de payloads do gateway."""
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(format_date(value))
    except InvalidDateError:
        return None


_SUBSCRIPTION_STATUS = {
    "ACTIVE": "active",
    "INACTIVE": "inactive",
    "EXPIRED": "inactive",
    "OVERDUE": "overdue",
    "CANCELED": "canceled",
    "CANCELLED": "canceled",
    "PENDING": "pending",
}

_PAYMENT_STATUS = {
    "RECEIVED": "confirmed",
    "CONFIRMED": "confirmed",
    "OVERDUE": "overdue",
    "REFUNDED": "refunded",
    "CANCELED": "canceled",
    "FAILED": "failed",
}


def map_gateway_status_to_local(status: Any) -> str:
    return _SUBSCRIPTION_STATUS.get(str(status or "").upper(), "pending")


def map_gateway_payment_status(status: Any) -> str:
    return _PAYMENT_STATUS.get(str(status or "").upper(), "pending")


def only_digits(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\D", "", str(value))


def is_masked(value: Any) -> bool:
    return isinstance(value, str) and "*" in value


def valid_tax_id(value: Any) -> str | None:
    """Retorna o CPF/CNPJ só com dígitos quando tem 11 ou 14 dígitos."""
    if not value or is_masked(value):
        return None
    digits = only_digits(value)
    return digits if len(digits) in (11, 14) else None


def infer_person_type(tax_id: str) -> str:
    return "JURIDICA" if len(only_digits(tax_id)) == 14 else "FISICA"
