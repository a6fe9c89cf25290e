from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from app.core.errors import (
    DateFormatError,
    InvalidCardError,
    InvalidPostalCodeError,
    InvalidValueError,
    MissingCardHolderError,
    MissingRemoteIpError,
)
from app.utils.formatting import (
    InvalidDateError,
    format_date,
    is_masked,
    normalize_cycle,
    only_digits,
    valid_tax_id,
)

DEFAULT_CYCLE = "MONTHLY"
DEFAULT_BILLING_TYPE = "PIX"

CYCLE_ALIASES = {
    "semanal": "WEEKLY",
    "quinzenal": "BIWEEKLY",
    "mensal": "MONTHLY",
    "bimestral": "BIMONTHLY",
    "trimestral": "QUARTERLY",
    "semestral": "SEMIANNUALLY",
    "anual": "YEARLY",
}

_CYCLE_STEP = {
    "WEEKLY": ("days", 7),
    "BIWEEKLY": ("days", 14),
    "MONTHLY": ("months", 1),
    "BIMONTHLY": ("months", 2),
    "QUARTERLY": ("months", 3),
    "SEMIANNUALLY": ("months", 6),
    "YEARLY": ("months", 12),
}

HOLDER_FIELDS = (
    "name",
    "email",
    "cpfCnpj",
    "postalCode",
    "address",
    "addressNumber",
    "addressComplement",
    "province",
    "phone",
    "mobilePhone",
)

OPTIONAL_FIELDS = {
    "discount": "discount",
    "interest": "interest",
    "fine": "fine",
    "max_payments": "maxPayments",
    "maxPayments": "maxPayments",
    "split": "split",
}


def resolve_cycle(value: Any, default: str = DEFAULT_CYCLE) -> str:
    cycle = normalize_cycle(value)
    if cycle:
        return cycle
    if isinstance(value, str):
        return CYCLE_ALIASES.get(value.strip().lower(), default)
    return default


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date(cycle: Any, from_date: date | datetime | None = None) -> date:
    start = from_date or date.today()
    if isinstance(start, datetime):
        start = start.date()
    unit, amount = _CYCLE_STEP.get(resolve_cycle(cycle), _CYCLE_STEP[DEFAULT_CYCLE])
    if unit == "days":
        return start + timedelta(days=amount)
    return add_months(start, amount)


def calculate_next_due_date(cycle: Any, from_date: date | datetime | None = None) -> str:
    """Próximo vencimento (``YYYY-MM-DD``) a partir do ciclo; ciclo desconhecido vale MONTHLY."""
    try:
        return format_date(next_due_date(cycle, from_date))
    except InvalidDateError as exc:
        raise DateFormatError("nextDueDate", exc) from exc


def prune_empty(value: Any) -> Any:
    """Remove recursivamente ``None`` e strings vazias (o gateway rejeita nulos explícitos)."""
    if isinstance(value, dict):
        return {
            key: prune_empty(item)
            for key, item in value.items()
            if item is not None and item != ""
        }
    if isinstance(value, list):
        return [prune_empty(item) for item in value if item is not None and item != ""]
    return value


def validate_postal_code(value: Any) -> str:
    digits = only_digits(value)
    if len(digits) != 8 or len(set(digits)) == 1:
        raise InvalidPostalCodeError(
            "CEP inválido para o titular do cartão: informe 8 dígitos válidos",
            details={"postalCode": digits},
        )
    return digits


def validate_credit_card(card: Dict[str, Any]) -> Dict[str, Any]:
    raw_number = str(card.get("number") or "")
    if is_masked(raw_number):
        raise InvalidCardError("Número do cartão está mascarado; envie o número completo ou um token")
    number = only_digits(raw_number)
    if raw_number.replace(" ", "").replace("-", "") != number or len(number) < 13:
        raise InvalidCardError("Número do cartão truncado ou inválido (mínimo de 13 dígitos)")

    holder_name = str(card.get("holderName") or "").strip()
    if len(re.sub(r"[\d\s]", "", holder_name)) < 2:
        raise InvalidCardError("Nome do titular do cartão inválido")

    month = only_digits(card.get("expiryMonth"))
    if not month or not 1 <= int(month) <= 12:
        raise InvalidCardError("Mês de validade do cartão inválido")

    year = only_digits(card.get("expiryYear"))
    if len(year) != 4:
        raise InvalidCardError("Ano de validade do cartão deve ter 4 dígitos")

    ccv = only_digits(card.get("ccv"))
    if len(ccv) not in (3, 4):
        raise InvalidCardError("Código de segurança (CVV) do cartão inválido")

    return {
        "holderName": holder_name,
        "number": number,
        "expiryMonth": month.zfill(2),
        "expiryYear": year,
        "ccv": ccv,
    }


def normalize_holder_info(holder: Dict[str, Any], tax_id: str | None) -> Dict[str, Any]:
    info = {key: holder.get(key) for key in HOLDER_FIELDS}
    if not info.get("name") or not info.get("email"):
        raise MissingCardHolderError("Nome e e-mail do titular do cartão são obrigatórios")

    holder_tax_id = valid_tax_id(info.get("cpfCnpj"))
    info["cpfCnpj"] = holder_tax_id or tax_id
    info["postalCode"] = validate_postal_code(info.get("postalCode"))
    info["addressNumber"] = str(info.get("addressNumber") or "").strip() or "0"

    phone = only_digits(info.get("phone")) or None
    mobile = only_digits(info.get("mobilePhone")) or None
    info["phone"] = phone or mobile
    info["mobilePhone"] = mobile or phone
    return info


def build_card_section(billing_info: Dict[str, Any], tax_id: str | None) -> Dict[str, Any]:
    holder = billing_info.get("creditCardHolderInfo")
    if not holder:
        holder = {key: billing_info.get(key) for key in HOLDER_FIELDS if billing_info.get(key)}
    if not holder:
        raise MissingCardHolderError("Dados do titular do cartão são obrigatórios para CREDIT_CARD")

    section: Dict[str, Any] = {"creditCardHolderInfo": normalize_holder_info(holder, tax_id)}

    remote_ip = billing_info.get("remoteIp")
    if not remote_ip:
        raise MissingRemoteIpError("IP de origem (remoteIp) é obrigatório para pagamentos com cartão")
    section["remoteIp"] = remote_ip

    token = billing_info.get("creditCardToken")
    card = billing_info.get("creditCard")
    if token:
        section["creditCardToken"] = token
    elif card:
        section["creditCard"] = validate_credit_card(card)
    else:
        raise InvalidCardError("Informe os dados do cartão ou um creditCardToken")
    return section


def precheck_subscription(
    plan_data: Dict[str, Any],
    billing_info: Optional[Dict[str, Any]],
    tax_id: str | None = None,
) -> None:
    """Validações locais feitas antes de qualquer chamada ao gateway."""
    billing_info = billing_info or {}
    coerce_value(plan_data.get("value"))
    if _billing_type(plan_data, billing_info) == "CREDIT_CARD":
        build_card_section(billing_info, tax_id)


def coerce_value(raw: Any) -> float:
    try:
        value = round(float(raw or 0), 2)
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        raise InvalidValueError("Valor da assinatura inválido: deve ser maior que zero")
    return value


def _billing_type(plan_data: Dict[str, Any], billing_info: Dict[str, Any]) -> str:
    return str(
        plan_data.get("billing_type") or billing_info.get("billingType") or DEFAULT_BILLING_TYPE
    ).upper()


def build_subscription_payload(
    customer_id: str,
    plan_data: Dict[str, Any],
    billing_info: Optional[Dict[str, Any]],
    external_reference: str,
    tax_id: str | None = None,
    *,
    reference_date: date | None = None,
) -> Dict[str, Any]:
    """Monta o payload de criação de assinatura aceito pelo gateway."""
    billing_info = billing_info or {}
    today = reference_date or date.today()

    value = coerce_value(plan_data.get("value"))
    billing_type = _billing_type(plan_data, billing_info)
    cycle = resolve_cycle(plan_data.get("cycle"))

    requested_due = plan_data.get("next_due_date")
    if requested_due:
        try:
            due = format_date(requested_due)
        except InvalidDateError as exc:
            raise DateFormatError("nextDueDate", exc) from exc
        if due < today.isoformat():
            due = calculate_next_due_date(cycle, today)
    else:
        due = calculate_next_due_date(cycle, today)

    payload: Dict[str, Any] = {
        "customer": customer_id,
        "billingType": billing_type,
        "cycle": cycle,
        "value": value,
        "nextDueDate": due,
        "description": plan_data.get("description") or plan_data.get("plan_name"),
        "externalReference": external_reference,
    }

    for source, target in OPTIONAL_FIELDS.items():
        if plan_data.get(source) not in (None, "", [], {}):
            payload[target] = plan_data[source]

    end_date = plan_data.get("end_date") or plan_data.get("endDate")
    if end_date:
        try:
            payload["endDate"] = format_date(end_date)
        except InvalidDateError as exc:
            raise DateFormatError("endDate", exc) from exc

    if billing_type == "CREDIT_CARD":
        payload.update(build_card_section(billing_info, tax_id))

    return prune_empty(payload)


def build_update_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Traduz campos locais de atualização para os campos do gateway."""
    payload: Dict[str, Any] = {}
    if data.get("value") is not None:
        payload["value"] = coerce_value(data["value"])
    if data.get("next_due_date"):
        try:
            payload["nextDueDate"] = format_date(data["next_due_date"])
        except InvalidDateError as exc:
            raise DateFormatError("nextDueDate", exc) from exc
    if data.get("cycle"):
        payload["cycle"] = resolve_cycle(data["cycle"])
    description = data.get("description") or data.get("plan_name")
    if description:
        payload["description"] = description
    if data.get("end_date"):
        try:
            payload["endDate"] = format_date(data["end_date"])
        except InvalidDateError as exc:
            raise DateFormatError("endDate", exc) from exc
    if data.get("max_payments") is not None:
        payload["maxPayments"] = data["max_payments"]
    if data.get("billing_type"):
        payload["billingType"] = str(data["billing_type"]).upper()
    return payload
