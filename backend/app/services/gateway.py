from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.logging_setup import get_logger

logger = get_logger("gateway")


class GatewayError(RuntimeError):
    """Erro estruturado devolvido pelo gateway de pagamentos (ou falha de rede)."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        errors: list[Dict[str, Any]] | None = None,
        original_error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or []
        self.gateway_error = {
            "status": status,
            "errors": self.errors,
            "original_error": original_error,
        }

    @property
    def status_code(self) -> int:
        return self.status or 502


class GatewayErrorKind(str, Enum):
    CUSTOMER_REMOVED = "customer_removed"
    TAX_ID_INVALID = "tax_id_invalid"
    OTHER = "other"


_REMOVED_WORDS = ("removido", "removida", "removed", "deleted", "excluído", "excluido")
_TAX_ID_WORDS = ("cpfcnpj", "cpf/cnpj", "cpf ou cnpj", "cpf", "cnpj")
_TAX_ID_PROBLEMS = ("inválido", "invalido", "invalid", "obrigatório", "obrigatorio", "required", "informe", "necessário", "necessario", "missing")


def classify_gateway_error(error: GatewayError) -> GatewayErrorKind:
    """Classifica o erro uma única vez a partir da lista estruturada e da mensagem."""
    texts = [error.message or ""]
    for item in error.errors:
        texts.append(str(item.get("code") or ""))
        texts.append(str(item.get("description") or ""))
    blob = " ".join(texts).lower()

    mentions_customer = "cliente" in blob or "customer" in blob
    if mentions_customer and any(word in blob for word in _REMOVED_WORDS):
        return GatewayErrorKind.CUSTOMER_REMOVED
    if any(word in blob for word in _TAX_ID_WORDS) and any(word in blob for word in _TAX_ID_PROBLEMS):
        return GatewayErrorKind.TAX_ID_INVALID
    return GatewayErrorKind.OTHER


@dataclass
class GatewayConfig:
    base_url: str
    access_token: str | None = None
    timeout_seconds: float = 30.0
    user_agent: str = "appns-assinaturas"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "GatewayConfig":
        settings = settings or default_settings
        return cls(
            base_url=settings.gateway_base_url,
            access_token=settings.gateway_access_token,
            timeout_seconds=settings.gateway_timeout_seconds,
            user_agent=settings.gateway_user_agent,
        )


class GatewayClient:
    """Cliente HTTP da API REST do gateway (Asaas v3)."""

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or GatewayConfig.from_settings()
        self._base_url = (self.config.base_url or "").rstrip("/")
        if not self._base_url:
            raise GatewayError("URL base do gateway não configurada.")
        self._client = httpx.Client(transport=transport, timeout=self.config.timeout_seconds)

    def close(self) -> None:
        self._client.close()

    def _headers(self, overrides: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }
        if self.config.access_token:
            headers["access_token"] = self.config.access_token
        # Subcontas enviam o próprio access_token por chamada
        headers.update({key: value for key, value in (overrides or {}).items() if value})
        return headers

    # ======================================================================================
    #     REQUISIÇÃO: ERROS NORMALIZADOS EM GatewayError
    # ======================================================================================
    def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        logger.debug("Gateway %s %s", method, endpoint)

        try:
            response = self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(headers),
            )
        except httpx.RequestError as exc:
            logger.error("Sem resposta do gateway em %s %s: %s", method, endpoint, exc)
            raise GatewayError(
                "Sem resposta do servidor Asaas",
                original_error=str(exc),
            ) from exc

        # -----------------------------
        # ERRO HTTP
        # -----------------------------
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            errors = payload.get("errors") or []
            descriptions = [str(item.get("description")) for item in errors if item.get("description")]
            message = (
                ", ".join(descriptions)
                or payload.get("message")
                or response.reason_phrase
                or f"Erro HTTP {response.status_code}"
            )
            logger.warning("Gateway respondeu %s em %s %s: %s", response.status_code, method, endpoint, message)
            raise GatewayError(
                message,
                status=response.status_code,
                errors=errors,
                original_error=response.text or None,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(
                "Resposta inválida do gateway",
                status=response.status_code,
                original_error=response.text,
            ) from exc

    # ------------------------------------------------------------------
    # Clientes
    # ------------------------------------------------------------------
    def create_customer(self, data: Dict[str, Any], *, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("POST", "customers", json=data, headers=headers)

    def get_customer(self, customer_id: str, *, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("GET", f"customers/{customer_id}", headers=headers)

    def update_customer(
        self, customer_id: str, data: Dict[str, Any], *, headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        return self.request("PUT", f"customers/{customer_id}", json=data, headers=headers)

    # ------------------------------------------------------------------
    # Assinaturas
    # ------------------------------------------------------------------
    def create_subscription(self, data: Dict[str, Any], *, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("POST", "subscriptions", json=data, headers=headers)

    def get_subscription(self, subscription_id: str, *, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("GET", f"subscriptions/{subscription_id}", headers=headers)

    def update_subscription(
        self, subscription_id: str, data: Dict[str, Any], *, headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        return self.request("PUT", f"subscriptions/{subscription_id}", json=data, headers=headers)

    def delete_subscription(self, subscription_id: str, *, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("DELETE", f"subscriptions/{subscription_id}", headers=headers)
