from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.core.errors import ServiceError


@dataclass
class ServiceResult:
    success: bool
    status: int = 200
    message: Optional[str] = None
    data: Any = None
    errors: list[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, *, message: str | None = None, status: int = 200) -> "ServiceResult":
        return cls(success=True, status=status, message=message, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        *,
        status: int = 400,
        data: Any = None,
        errors: list[Dict[str, Any]] | None = None,
    ) -> "ServiceResult":
        return cls(success=False, status=status, message=message, data=data, errors=errors or [])

    @classmethod
    def from_error(cls, exc: ServiceError, *, data: Any = None) -> "ServiceResult":
        payload = data if data is not None else (exc.details or None)
        return cls.fail(exc.message, status=exc.status_code, data=payload)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "status": self.status}
        if self.message:
            result["message"] = self.message
        if self.data is not None:
            result["data"] = self.data
        if self.errors:
            result["errors"] = self.errors
        return result
