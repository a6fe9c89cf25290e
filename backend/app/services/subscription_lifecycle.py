from __future__ import annotations

import time
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import (
    ConsistencyError,
    InternalError,
    InvalidTaxIdError,
    NotFoundError,
    OrphanedSubscriptionError,
    ServiceError,
    ValidationError,
)
from app.core.logging_setup import get_logger
from app.models.subscription import SubscriptionFields, SubscriptionStatus
from app.services.customer_sync import (
    CustomerReconciler,
    CustomerResolution,
    OwnerProfile,
    resolve_tax_id,
)
from app.services.gateway import GatewayClient, GatewayError, classify_gateway_error
from app.services.results import ServiceResult
from app.services.subscription_builder import (
    build_subscription_payload,
    build_update_payload,
    coerce_value,
    precheck_subscription,
    resolve_cycle,
)
from app.services.subscription_retry import HealingStep, SelfHealingPolicy
from app.utils.formatting import (
    is_masked,
    map_gateway_status_to_local,
    only_digits,
    parse_date,
)
from app.utils.redact import describe_tax_id, redact_sensitive

logger = get_logger("subscriptions")

SOURCE = "appns-assinaturas"


class _CreationFailed(Exception):
    def __init__(self, error: GatewayError, payload: Dict[str, Any], attempts: int) -> None:
        super().__init__(error.message)
        self.error = error
        self.payload = payload
        self.attempts = attempts


class SubscriptionLifecycleService:
    """Operações comuns às assinaturas de sellers e shoppers."""

    model: type[SubscriptionFields]
    read_schema: type[BaseModel]
    owner_field: str

    def __init__(
        self,
        session: Session,
        gateway: GatewayClient | None = None,
        *,
        reconciler: CustomerReconciler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.gateway = gateway or GatewayClient()
        self.customers = reconciler or CustomerReconciler(session, self.gateway, sleep=sleep)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def serialize(self, row: SubscriptionFields) -> Dict[str, Any]:
        return self.read_schema.model_validate(row).model_dump(mode="json")

    def _gateway_headers(self, row: SubscriptionFields) -> Optional[Dict[str, str]]:
        return None

    def _load(self, subscription_id: Any) -> SubscriptionFields:
        if subscription_id in (None, ""):
            raise ValidationError("ID da assinatura é obrigatório")
        row = self.session.get(self.model, subscription_id)
        if not row or row.deleted_at is not None:
            raise NotFoundError("Assinatura não encontrada")
        return row

    def _active_query(self):
        return select(self.model).where(self.model.deleted_at.is_(None))

    @staticmethod
    def _unexpected(exc: Exception, operation: str) -> ServiceResult:
        logger.exception("Erro inesperado em %s: %s", operation, exc)
        return ServiceResult.from_error(InternalError("Erro interno do servidor"))

    @staticmethod
    def _gateway_failure(exc: GatewayError, data: Any = None) -> ServiceResult:
        return ServiceResult.fail(exc.message, status=exc.status_code, errors=exc.errors, data=data)

    @staticmethod
    def require_tax_id(profile: OwnerProfile, billing_info: Optional[Dict[str, Any]]) -> str:
        """CPF/CNPJ local válido; mensagens distintas para ausente e formato incorreto."""
        tax_id = resolve_tax_id(profile, billing_info)
        if tax_id:
            return tax_id
        billing_info = billing_info or {}
        holder = billing_info.get("creditCardHolderInfo") or {}
        raw_values = [
            billing_info.get("cpfCnpj"),
            billing_info.get("cpf_cnpj"),
            billing_info.get("tax_id"),
            *profile.stored_tax_ids,
            holder.get("cpfCnpj"),
        ]
        informed = [value for value in raw_values if value and not is_masked(value)]
        if informed:
            raise InvalidTaxIdError(
                "CPF/CNPJ em formato inválido: informe 11 (CPF) ou 14 (CNPJ) dígitos",
                details={"length": len(only_digits(informed[0]))},
            )
        raise InvalidTaxIdError("CPF/CNPJ é obrigatório para criar a assinatura")

    # ------------------------------------------------------------------
    # Criação (fluxo comum)
    # ------------------------------------------------------------------
    def _ensure_customer(
        self, profile: OwnerProfile, billing_info: Optional[Dict[str, Any]], *, commit: bool = True
    ) -> CustomerResolution:
        try:
            return self.customers.ensure_customer(profile, billing_info, commit=commit)
        except ConsistencyError:
            logger.warning("Cliente de %s ainda inconsistente no gateway; nova tentativa", profile.external_reference)
            return self.customers.ensure_customer(profile, billing_info, commit=commit)

    @staticmethod
    def _align_holder_tax_id(payload: Dict[str, Any], tax_id: str | None) -> Dict[str, Any]:
        holder = payload.get("creditCardHolderInfo")
        if not holder or not tax_id:
            return payload
        return {**payload, "creditCardHolderInfo": {**holder, "cpfCnpj": tax_id}}

    def _send_with_healing(
        self,
        profile: OwnerProfile,
        payload: Dict[str, Any],
        billing_info: Optional[Dict[str, Any]],
        tax_id: str | None,
        *,
        commit: bool = True,
    ) -> tuple[Dict[str, Any], Dict[str, Any]]:
        policy = SelfHealingPolicy()
        card_payment = payload.get("billingType") == "CREDIT_CARD"

        while True:
            try:
                created = self.gateway.create_subscription(payload, headers=profile.headers)
                return created, payload
            except GatewayError as exc:
                kind = classify_gateway_error(exc)
                step = policy.next_step(kind)
                logger.warning(
                    "Gateway recusou assinatura de %s (%s): %s -> %s",
                    profile.external_reference,
                    kind.value,
                    exc.message,
                    step.value,
                )

                if step is HealingStep.REPAIR_CUSTOMER:
                    try:
                        outcome = self.customers.repair_customer(
                            profile,
                            payload["customer"],
                            billing_info,
                            tax_id,
                            card_payment=card_payment,
                        )
                    except GatewayError as heal_exc:
                        raise _CreationFailed(heal_exc, payload, policy.attempts) from heal_exc
                    tax_id = outcome.tax_id or tax_id
                    payload = self._align_holder_tax_id(payload, tax_id)
                    if outcome.repaired:
                        continue
                    step = policy.next_step(kind)

                if step in (HealingStep.RECREATE_CUSTOMER, HealingStep.FORCE_RECREATE_CUSTOMER):
                    try:
                        customer_id = self.customers.recreate_customer(
                            profile, billing_info, tax_id, commit=commit
                        )
                    except GatewayError as heal_exc:
                        raise _CreationFailed(heal_exc, payload, policy.attempts) from heal_exc
                    payload = self._align_holder_tax_id({**payload, "customer": customer_id}, tax_id)
                    continue

                raise _CreationFailed(exc, payload, policy.attempts) from exc

    def _persist(self, row: SubscriptionFields, commit: bool) -> SubscriptionFields:
        external_id = row.external_id or ""
        try:
            self.session.add(row)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
            self.session.refresh(row)
        except SQLAlchemyError as exc:
            if commit:
                self.session.rollback()
            logger.error(
                "Assinatura %s criada no gateway mas não persistida localmente: %s",
                external_id,
                exc,
            )
            raise OrphanedSubscriptionError(external_id, details={"orphaned": True}) from exc
        return row

    def _provision(
        self,
        profile: OwnerProfile,
        plan_data: Dict[str, Any],
        billing_info: Optional[Dict[str, Any]],
        external_reference: str,
        make_row: Callable[[Dict[str, Any], Dict[str, Any]], SubscriptionFields],
        *,
        commit: bool = True,
    ) -> tuple[SubscriptionFields, Dict[str, Any]] | ServiceResult:
        """Cliente -> payload -> gateway -> persistência local, nesta ordem."""
        tax_id = self.require_tax_id(profile, billing_info)
        precheck_subscription(plan_data, billing_info, tax_id)
        resolution = self._ensure_customer(profile, billing_info, commit=commit)
        tax_id = resolution.tax_id or tax_id
        logger.info(
            "Cliente %s pronto para %s (cpfCnpj %s)",
            resolution.customer_id,
            external_reference,
            describe_tax_id(tax_id),
        )

        payload = build_subscription_payload(
            resolution.customer_id,
            plan_data,
            billing_info,
            external_reference,
            tax_id,
        )
        logger.info("Enviando assinatura ao gateway: %s", redact_sensitive(payload))

        try:
            created, sent = self._send_with_healing(
                profile, payload, billing_info, tax_id, commit=commit
            )
        except _CreationFailed as failure:
            logger.error(
                "Falha ao criar assinatura %s após %s correção(ões): %s | payload=%s",
                external_reference,
                failure.attempts,
                failure.error.message,
                redact_sensitive(failure.payload),
            )
            return self._gateway_failure(
                failure.error,
                data={"payload": failure.payload, "gateway_error": failure.error.gateway_error},
            )

        row = make_row(created, sent)
        row.external_id = created.get("id")
        row.status = SubscriptionStatus.PENDING.value
        row.meta_data = {
            **(row.meta_data or {}),
            "source": SOURCE,
            "gateway_customer_id": sent.get("customer"),
            "gateway_subscription_id": created.get("id"),
        }
        return self._persist(row, commit), created

    def _local_row(
        self, created: Dict[str, Any], sent: Dict[str, Any], plan_name: str, **fields: Any
    ) -> Dict[str, Any]:
        return {
            "plan_name": plan_name,
            "value": sent["value"],
            "cycle": sent["cycle"],
            "billing_type": sent["billingType"],
            "next_due_date": parse_date(created.get("nextDueDate") or sent.get("nextDueDate")),
            "start_date": date.today(),
            "end_date": parse_date(sent.get("endDate")),
            **fields,
        }

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------
    def get(self, subscription_id: Any) -> ServiceResult:
        try:
            return ServiceResult.ok(self.serialize(self._load(subscription_id)))
        except ServiceError as exc:
            return ServiceResult.from_error(exc)

    def get_all(self) -> ServiceResult:
        rows = self.session.exec(self._active_query().order_by(self.model.created_at.desc())).all()
        return ServiceResult.ok([self.serialize(row) for row in rows])

    def find_by_external_id(self, external_id: str, *, include_deleted: bool = False) -> SubscriptionFields | None:
        statement = select(self.model).where(self.model.external_id == external_id)
        if not include_deleted:
            statement = statement.where(self.model.deleted_at.is_(None))
        return self.session.exec(statement).first()

    def get_by_external_id(self, external_id: Optional[str]) -> ServiceResult:
        if not external_id:
            return ServiceResult.from_error(ValidationError("ID externo da assinatura é obrigatório"))
        row = self.find_by_external_id(external_id)
        if not row:
            return ServiceResult.from_error(NotFoundError("Assinatura não encontrada"))
        return ServiceResult.ok(self.serialize(row))

    def get_by_owner_id(self, owner_id: Any) -> ServiceResult:
        if owner_id in (None, ""):
            return ServiceResult.from_error(ValidationError("ID do proprietário é obrigatório"))
        column = getattr(self.model, self.owner_field)
        rows = self.session.exec(
            self._active_query().where(column == owner_id).order_by(self.model.created_at.desc())
        ).all()
        return ServiceResult.ok([self.serialize(row) for row in rows])

    # ------------------------------------------------------------------
    # Atualização / exclusão
    # ------------------------------------------------------------------
    def _apply_local_fields(self, row: SubscriptionFields, data: Dict[str, Any]) -> None:
        if data.get("value") is not None:
            row.value = round(float(data["value"]), 2)
        if data.get("cycle"):
            row.cycle = resolve_cycle(data["cycle"])
        if data.get("billing_type"):
            row.billing_type = str(data["billing_type"]).upper()
        if data.get("plan_name"):
            row.plan_name = data["plan_name"]
        if data.get("next_due_date"):
            row.next_due_date = parse_date(data["next_due_date"])
        end_date = data.get("end_date")
        if isinstance(end_date, datetime):
            row.end_date = end_date
        elif parse_date(end_date):
            row.end_date = datetime.combine(parse_date(end_date), datetime.min.time())
        if data.get("status"):
            row.status = data["status"]
        if data.get("metadata"):
            row.meta_data = {**(row.meta_data or {}), **data["metadata"]}
        row.updated_at = datetime.utcnow()

    def update(self, subscription_id: Any, data: Dict[str, Any]) -> ServiceResult:
        try:
            row = self._load(subscription_id)
            data = dict(data or {})
            if data.get("status") and data["status"] not in {item.value for item in SubscriptionStatus}:
                raise ValidationError(f"Status inválido: {data['status']}")
            if data.get("value") is not None:
                data["value"] = coerce_value(data["value"])

            if row.external_id:
                gateway_payload = build_update_payload(data)
                if gateway_payload:
                    try:
                        response = self.gateway.update_subscription(
                            row.external_id,
                            gateway_payload,
                            headers=self._gateway_headers(row),
                        )
                    except GatewayError as exc:
                        logger.error("Gateway recusou atualização de %s: %s", row.external_id, exc.message)
                        return self._gateway_failure(exc)
                    if response.get("status"):
                        data["status"] = map_gateway_status_to_local(response["status"])

            self._apply_local_fields(row, data)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
            return ServiceResult.ok(self.serialize(row))
        except ServiceError as exc:
            return ServiceResult.from_error(exc)
        except Exception as exc:  # noqa: BLE001
            return self._unexpected(exc, "update")

    def delete(self, subscription_id: Any) -> ServiceResult:
        try:
            row = self._load(subscription_id)
        except ServiceError as exc:
            return ServiceResult.from_error(exc)

        if row.external_id:
            try:
                self.gateway.delete_subscription(row.external_id, headers=self._gateway_headers(row))
            except GatewayError as exc:
                logger.error("Gateway recusou cancelamento de %s: %s", row.external_id, exc.message)
                return self._gateway_failure(exc)

        now = datetime.utcnow()
        row.status = SubscriptionStatus.CANCELED.value
        row.end_date = row.end_date or now
        row.deleted_at = now
        row.updated_at = now
        self.session.add(row)
        self.session.commit()
        logger.info("Assinatura %s (%s) removida", row.id, row.external_id)
        return ServiceResult.ok({"id": row.id, "external_id": row.external_id}, message="Assinatura removida")

    def update_status_local(self, subscription_id: Any, status: str) -> ServiceResult:
        try:
            row = self._load(subscription_id)
            if status not in {item.value for item in SubscriptionStatus}:
                raise ValidationError(f"Status inválido: {status}")
        except ServiceError as exc:
            return ServiceResult.from_error(exc)
        row.status = status
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return ServiceResult.ok(self.serialize(row))

    def update_status_from_gateway(
        self,
        external_id: str,
        gateway_status: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        row = self.find_by_external_id(external_id) if external_id else None
        if not row:
            return ServiceResult.from_error(NotFoundError("Assinatura não encontrada"))

        status = map_gateway_status_to_local(gateway_status)
        now = datetime.utcnow()
        row.status = status
        if status == SubscriptionStatus.CANCELED.value:
            row.end_date = now
        row.meta_data = {**(row.meta_data or {}), **(extra or {}), "gateway_status": gateway_status}
        row.updated_at = now
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return ServiceResult.ok(self.serialize(row))
