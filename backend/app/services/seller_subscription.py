from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from app.core.logging_setup import get_logger
from app.models.seller import Seller
from app.models.subscription import SellerSubscription, SubscriptionStatus
from app.schemas.subscription import SellerSubscriptionRead
from app.services.customer_sync import owner_profile
from app.services.gateway import GatewayError
from app.services.results import ServiceResult
from app.services.subscription_lifecycle import SubscriptionLifecycleService

logger = get_logger("subscriptions.seller")

DEFAULT_FEATURES = {
    "max_products": 100,
    "max_orders_per_month": 500,
    "support_level": "basic",
}


def default_plan() -> Dict[str, Any]:
    return {
        "plan_name": settings.default_plan_name,
        "value": settings.default_plan_value,
        "cycle": settings.default_plan_cycle,
        "features": dict(DEFAULT_FEATURES),
    }


class SellerSubscriptionService(SubscriptionLifecycleService):
    """Assinaturas dos sellers (plano do app), uma ativa por seller."""

    model = SellerSubscription
    read_schema = SellerSubscriptionRead
    owner_field = "seller_id"

    def _gateway_headers(self, row: SellerSubscription) -> Optional[Dict[str, str]]:
        seller = self.session.get(Seller, row.seller_id)
        if seller and seller.subaccount_api_key:
            return {"access_token": seller.subaccount_api_key}
        return None

    def _load_seller(self, seller_id: Any) -> Seller:
        if seller_id in (None, ""):
            raise ValidationError("ID do seller é obrigatório")
        seller = self.session.get(Seller, seller_id)
        if not seller:
            raise NotFoundError(f"Seller com ID {seller_id} não encontrado")
        return seller

    def _current(self, seller_id: int, statuses: tuple[str, ...]) -> SellerSubscription | None:
        return self.session.exec(
            self._active_query()
            .where(SellerSubscription.seller_id == seller_id)
            .where(SellerSubscription.status.in_(statuses))
            .order_by(SellerSubscription.created_at.desc())
        ).first()

    def create_subscription(
        self,
        seller_id: Any,
        plan_data: Optional[Dict[str, Any]] = None,
        billing_info: Optional[Dict[str, Any]] = None,
        *,
        commit: bool = True,
    ) -> ServiceResult:
        try:
            seller = self._load_seller(seller_id)
            pending_or_active = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PENDING.value)
            if self._current(seller.id, pending_or_active):
                raise ConflictError("Seller já possui assinatura ativa")

            plan = {**default_plan(), **{k: v for k, v in (plan_data or {}).items() if v is not None}}
            plan["description"] = plan.get("description") or plan["plan_name"]

            def make_row(created: Dict[str, Any], sent: Dict[str, Any]) -> SellerSubscription:
                return SellerSubscription(
                    seller_id=seller.id,
                    features=plan.get("features"),
                    meta_data={"seller_id": seller.id},
                    **self._local_row(created, sent, plan["plan_name"]),
                )

            outcome = self._provision(
                owner_profile(seller),
                plan,
                billing_info,
                f"seller_subscription_{seller.id}",
                make_row,
                commit=commit,
            )
            if isinstance(outcome, ServiceResult):
                return outcome

            row, created = outcome
            logger.info("Assinatura %s criada para o seller %s", row.external_id, seller.id)
            return ServiceResult.ok(
                {"subscription": self.serialize(row), "gateway_subscription": created},
                message="Assinatura criada com sucesso",
                status=201,
            )
        except ServiceError as exc:
            return ServiceResult.from_error(exc)
        except GatewayError as exc:
            return self._gateway_failure(exc)
        except Exception as exc:  # noqa: BLE001
            return self._unexpected(exc, "create_subscription")

    def create(
        self,
        seller_id: Any,
        data: Optional[Dict[str, Any]] = None,
        *,
        commit: bool = True,
    ) -> ServiceResult:
        data = dict(data or {})
        billing_info = data.pop("billing_info", None)
        return self.create_subscription(seller_id, data, billing_info, commit=commit)

    def get_by_seller_id(self, seller_id: Any) -> ServiceResult:
        return self.get_by_owner_id(seller_id)

    def get_active_subscription(self, seller_id: Any) -> ServiceResult:
        try:
            seller = self._load_seller(seller_id)
        except ServiceError as exc:
            return ServiceResult.from_error(exc)
        row = self._current(seller.id, (SubscriptionStatus.ACTIVE.value,))
        if not row:
            return ServiceResult.from_error(NotFoundError("Nenhuma assinatura ativa encontrada"))
        return ServiceResult.ok(self.serialize(row))

    def cancel_subscription(self, seller_id: Any, reason: str | None = None) -> ServiceResult:
        try:
            seller = self._load_seller(seller_id)
        except ServiceError as exc:
            return ServiceResult.from_error(exc)

        row = self._current(seller.id, (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PENDING.value))
        if not row:
            return ServiceResult.from_error(NotFoundError("Assinatura ativa não encontrada"))

        if row.external_id:
            try:
                self.gateway.delete_subscription(row.external_id, headers=self._gateway_headers(row))
            except GatewayError as exc:
                logger.error("Falha ao cancelar %s no gateway: %s", row.external_id, exc.message)
                return self._gateway_failure(exc)

        now = datetime.utcnow()
        row.status = SubscriptionStatus.CANCELED.value
        row.end_date = now
        row.meta_data = {
            **(row.meta_data or {}),
            "cancel_reason": reason or "Cancelado pelo seller",
            "canceled_at": now.isoformat(),
        }
        row.updated_at = now
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        logger.info("Assinatura %s do seller %s cancelada", row.external_id, seller.id)
        return ServiceResult.ok(self.serialize(row), message="Assinatura cancelada")

    def retry_with_payment_method(
        self,
        seller_id: Any,
        billing_type: str,
        billing_info: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """Nova tentativa de assinatura do plano padrão com outra forma de pagamento."""
        try:
            seller = self._load_seller(seller_id)
        except ServiceError as exc:
            return ServiceResult.from_error(exc)
        if not billing_type:
            return ServiceResult.from_error(ValidationError("Forma de pagamento é obrigatória"))
        if self._current(seller.id, (SubscriptionStatus.ACTIVE.value,)):
            return ServiceResult.from_error(ConflictError("Seller já possui assinatura ativa"))

        # Tentativas pendentes anteriores são canceladas antes da nova
        stale = self._current(seller.id, (SubscriptionStatus.PENDING.value,))
        if stale:
            removed = self.delete(stale.id)
            if not removed.success:
                return removed

        plan = {**default_plan(), "billing_type": str(billing_type).upper()}
        return self.create_subscription(seller.id, plan, billing_info)
