from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(RuntimeError):
    """Erro de domínio com status HTTP e detalhes estruturados."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 400


class ForbiddenError(ServiceError):
    status_code = 403


class ConsistencyError(ServiceError):
    """Gateway ainda não refletiu uma escrita recente (transitório)."""

    status_code = 503


class InternalError(ServiceError):
    status_code = 500


class OrphanedSubscriptionError(InternalError):
    """Assinatura criada no gateway mas não persistida localmente."""

    def __init__(self, external_id: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"Assinatura {external_id} criada no gateway, mas não foi salva localmente",
            details={"external_id": external_id, **(details or {})},
        )
        self.external_id = external_id


class InvalidTaxIdError(ValidationError):
    pass


# ---------------------------------------------------------------------------
# Erros de montagem do payload de assinatura
# ---------------------------------------------------------------------------
class BuildError(ValidationError):
    pass


class InvalidValueError(BuildError):
    pass


class InvalidPostalCodeError(BuildError):
    pass


class MissingRemoteIpError(BuildError):
    pass


class MissingCardHolderError(BuildError):
    pass


class InvalidCardError(BuildError):
    pass


class DateFormatError(BuildError):
    """Falha ao formatar uma data calculada ou informada (campo indicado em ``field``)."""

    status_code = 500
    labels = {"nextDueDate": "data de vencimento", "endDate": "data final"}

    def __init__(self, field: str, original: Exception) -> None:
        super().__init__(
            f"Erro ao formatar {self.labels.get(field, field)} ({field}): {original}",
            details={"field": field},
        )
        self.field = field
