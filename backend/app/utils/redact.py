from __future__ import annotations

import copy
from typing import Any

from app.utils.formatting import only_digits


def mask_middle(value: str, keep_start: int, keep_end: int) -> str:
    if len(value) <= keep_start + keep_end:
        return "*" * len(value)
    hidden = len(value) - keep_start - keep_end
    return f"{value[:keep_start]}{'*' * hidden}{value[len(value) - keep_end:]}"


def mask_card_number(number: Any) -> str:
    digits = only_digits(number)
    if len(digits) < 8:
        return mask_middle(str(number or ""), 2, 2)
    return mask_middle(digits, 4, 4)


def describe_tax_id(value: Any) -> str:
    """Representação segura de CPF/CNPJ para logs: tamanho e dois últimos dígitos."""
    digits = only_digits(value)
    if not digits:
        return "ausente"
    return f"len={len(digits)} final={digits[-2:]}"


def _redact(node: Any) -> None:
    if isinstance(node, list):
        for item in node:
            _redact(item)
        return
    if not isinstance(node, dict):
        return

    for key, value in list(node.items()):
        if key == "creditCard" and isinstance(value, dict):
            if value.get("number"):
                value["number"] = mask_card_number(value["number"])
            if value.get("ccv"):
                value["ccv"] = "***"
        elif key == "creditCardToken" and value:
            node[key] = "***TOKEN***"
        elif key == "remoteIp" and value:
            node[key] = "***.***.***.***"
        elif key == "cpfCnpj" and isinstance(value, str) and value:
            node[key] = mask_middle(value, 3, 2)
        else:
            _redact(value)


def redact_sensitive(payload: Any) -> Any:
    """Cópia profunda com dados de cartão, CPF/CNPJ e IP mascarados (apenas para logs)."""
    clone = copy.deepcopy(payload)
    _redact(clone)
    return clone
