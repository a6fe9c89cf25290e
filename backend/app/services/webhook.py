from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict

from sqlmodel import Session, select

from app.core.logging_setup import get_logger
from app.models.payment import (
    PayableRef,
    Payment,
    PaymentStatus,
    SellerSubscriptionRef,
    ShopperSubscriptionRef,
)
from app.models.seller import Seller
from app.models.shopper import Shopper
from app.models.subscription import (
    SellerSubscription,
    SubscriptionFields,
    SubscriptionStatus,
)
from app.services.gateway import GatewayClient
from app.services.results import ServiceResult
from app.services.seller_subscription import SellerSubscriptionService
from app.services.shopper_subscription import ShopperSubscriptionService
from app.services.subscription_builder import resolve_cycle
from app.services.subscription_lifecycle import SubscriptionLifecycleService
from app.utils.formatting import map_gateway_payment_status, parse_date

logger = get_logger("webhook")

Handler = Callable[[Dict[str, Any]], ServiceResult]

_SELLER_IN_TEXT = re.compile(r"seller[_-]?id[:\s]*(\d+)", re.IGNORECASE)
_SHOPPER_IN_TEXT = re.compile(r"shopper[_-]?id[:\s]*(\d+)", re.IGNORECASE)

# Status do pagamento -> status da assinatura
_SUBSCRIPTION_STATUS_FOR_PAYMENT = {
    PaymentStatus.CONFIRMED.value: SubscriptionStatus.ACTIVE.value,
    PaymentStatus.OVERDUE.value: SubscriptionStatus.OVERDUE.value,
    PaymentStatus.CANCELED.value: SubscriptionStatus.CANCELED.value,
    PaymentStatus.REFUNDED.value: SubscriptionStatus.CANCELED.value,
}


@dataclass
class ResolvedEntity:
    kind: str
    id: int
    via: str
    subscription: SubscriptionFields | None = None


class WebhookEventRouter:
    """Despacha eventos do gateway para os handlers de pagamento e assinatura."""

    def __init__(self, session: Session, gateway: GatewayClient | None = None) -> None:
        self.session = session
        self.sellers = SellerSubscriptionService(session, gateway)
        self.shoppers = ShopperSubscriptionService(session, self.sellers.gateway)
        self._handlers: Dict[str, Handler] = {
            "PAYMENT_CREATED": self.handle_payment,
            "PAYMENT_RECEIVED": self.handle_payment,
            "PAYMENT_CONFIRMED": self.handle_payment,
            "PAYMENT_OVERDUE": self.handle_payment,
            "PAYMENT_REFUNDED": self.handle_payment,
            "PAYMENT_CANCELED": self.handle_payment,
            "SUBSCRIPTION_DELETED": self.handle_subscription_deleted,
            "SUBSCRIPTION_RENEWED": self.handle_subscription_renewed,
            "SUBSCRIPTION_UPDATED": self.handle_subscription_updated,
        }

    # ------------------------------------------------------------------
    # Tabela de eventos
    # ------------------------------------------------------------------
    def register_handler(self, event: str, handler: Handler) -> None:
        self._handlers[event] = handler

    def has_handler(self, event: str) -> bool:
        return event in self._handlers

    def supported_events(self) -> list[str]:
        return sorted(self._handlers)

    def process(self, payload: Dict[str, Any]) -> ServiceResult:
        event = (payload or {}).get("event")
        if not event:
            logger.warning("Webhook sem campo 'event': %s", payload)
            return ServiceResult.fail("Evento não informado", status=400)

        handler = self._handlers.get(event)
        if handler is None:
            logger.warning("Evento de webhook não tratado: %s", event)
            return ServiceResult.ok({"event": event, "handled": False}, message="Evento não tratado")

        logger.info("Processando webhook %s", event)
        try:
            return handler(payload)
        except Exception as exc:  # noqa: BLE001
            self.session.rollback()
            logger.exception("Erro ao processar webhook %s: %s", event, exc)
            return ServiceResult.fail(f"Erro ao processar evento {event}: {exc}", status=500)

    # ------------------------------------------------------------------
    # Resolução de entidades
    # ------------------------------------------------------------------
    def _service_for(self, kind: str) -> SubscriptionLifecycleService:
        return self.sellers if kind == "seller" else self.shoppers

    def resolve_entity(self, payment: Dict[str, Any]) -> ResolvedEntity | None:
        customer_id = payment.get("customer")
        if customer_id:
            seller = self.session.exec(select(Seller).where(Seller.payments_customer_id == customer_id)).first()
            if seller:
                return ResolvedEntity("seller", seller.id, "customer")
            shopper = self.session.exec(select(Shopper).where(Shopper.payments_customer_id == customer_id)).first()
            if shopper:
                return ResolvedEntity("shopper", shopper.id, "customer")

        external_id = payment.get("subscription")
        if external_id:
            row = self.sellers.find_by_external_id(external_id)
            if row:
                return ResolvedEntity("seller", row.seller_id, "subscription", row)
            row = self.shoppers.find_by_external_id(external_id)
            if row:
                return ResolvedEntity("shopper", row.shopper_id, "subscription", row)

        description = payment.get("description") or ""
        for kind, pattern in (("seller", _SELLER_IN_TEXT), ("shopper", _SHOPPER_IN_TEXT)):
            match = pattern.search(description)
            if match:
                return ResolvedEntity(kind, int(match.group(1)), "description")
        return None

    def _subscription_for(self, entity: ResolvedEntity, payment: Dict[str, Any]) -> SubscriptionFields | None:
        if entity.subscription is not None:
            return entity.subscription
        service = self._service_for(entity.kind)
        external_id = payment.get("subscription")
        if external_id:
            return service.find_by_external_id(external_id)
        column = getattr(service.model, service.owner_field)
        return self.session.exec(
            select(service.model)
            .where(column == entity.id)
            .where(service.model.deleted_at.is_(None))
            .order_by(service.model.created_at.desc())
        ).first()

    @staticmethod
    def _payable_ref(row: SubscriptionFields) -> PayableRef:
        if isinstance(row, SellerSubscription):
            return SellerSubscriptionRef(row.id)
        return ShopperSubscriptionRef(row.id)

    # ------------------------------------------------------------------
    # Pagamentos
    # ------------------------------------------------------------------
    def upsert_payment(self, payment: Dict[str, Any], ref: PayableRef) -> Payment:
        row = self.session.exec(select(Payment).where(Payment.external_id == payment["id"])).first()
        if row is None:
            row = Payment(external_id=payment["id"], payable_type=ref.kind.value, payable_id=ref.id)
        else:
            row.updated_at = datetime.utcnow()
        row.assign_payable(ref)
        row.status = map_gateway_payment_status(payment.get("status"))
        row.value = payment.get("value")
        row.net_value = payment.get("netValue")
        row.billing_type = payment.get("billingType")
        row.payment_date = parse_date(payment.get("paymentDate") or payment.get("confirmedDate"))
        row.due_date = parse_date(payment.get("dueDate"))
        row.invoice_url = payment.get("invoiceUrl")
        row.description = payment.get("description")
        row.transaction_data = payment
        self.session.add(row)
        return row

    def _record_seller_payment(self, seller_id: int, payment: Payment) -> None:
        seller = self.session.get(Seller, seller_id)
        if not seller:
            return
        seller.payments_status = payment.status
        seller.payments_last_update = datetime.utcnow()
        if payment.due_date:
            seller.payments_next_due = payment.due_date
        self.session.add(seller)

    def handle_payment(self, payload: Dict[str, Any]) -> ServiceResult:
        payment = payload.get("payment") or {}
        if not payment.get("id"):
            return ServiceResult.fail("Dados do pagamento ausentes no evento", status=400)

        entity = self.resolve_entity(payment)
        if entity is None:
            logger.warning("Pagamento %s sem seller/shopper associado", payment["id"])
            return ServiceResult.fail(
                "Pagamento não associado a seller ou shopper",
                status=200,
                data={"payment_id": payment["id"], "reason": "unassociated"},
            )

        subscription = self._subscription_for(entity, payment)
        if subscription is None:
            logger.warning("Pagamento %s do %s %s sem assinatura local", payment["id"], entity.kind, entity.id)
            return ServiceResult.fail(
                "Assinatura do pagamento não encontrada",
                status=200,
                data={"payment_id": payment["id"], "reason": "unassociated", "entity": entity.kind},
            )

        row = self.upsert_payment(payment, self._payable_ref(subscription))
        if entity.kind == "seller":
            self._record_seller_payment(subscription.seller_id, row)

        new_status = _SUBSCRIPTION_STATUS_FOR_PAYMENT.get(row.status)
        if new_status == SubscriptionStatus.ACTIVE.value and row.due_date:
            subscription.next_due_date = row.due_date
        self.session.add(subscription)
        self.session.commit()

        if new_status and subscription.status != new_status:
            self._service_for(entity.kind).update_status_local(subscription.id, new_status)
            logger.info("Assinatura %s -> %s (pagamento %s)", subscription.external_id, new_status, row.external_id)

        return ServiceResult.ok(
            {
                "payment_id": row.external_id,
                "payment_status": row.status,
                "subscription_id": subscription.id,
                "subscription_status": new_status or subscription.status,
                "entity": entity.kind,
            }
        )

    # ------------------------------------------------------------------
    # Assinaturas
    # ------------------------------------------------------------------
    def _find_subscription(self, external_id: str) -> SubscriptionFields | None:
        return self.sellers.find_by_external_id(external_id) or self.shoppers.find_by_external_id(external_id)

    def handle_subscription_deleted(self, payload: Dict[str, Any]) -> ServiceResult:
        external_id = (payload.get("subscription") or {}).get("id")
        if not external_id:
            return ServiceResult.fail("Dados da assinatura ausentes no evento", status=400)

        row = self._find_subscription(external_id)
        if row is None:
            logger.info("Assinatura %s já removida ou inexistente", external_id)
            return ServiceResult.ok({"subscription_id": external_id, "deleted": False})

        now = datetime.utcnow()
        row.status = SubscriptionStatus.INACTIVE.value
        row.end_date = now
        row.deleted_at = now
        row.updated_at = now
        self.session.add(row)
        self.session.commit()
        logger.info("Assinatura %s removida via webhook", external_id)
        return ServiceResult.ok({"subscription_id": external_id, "deleted": True})

    def handle_subscription_renewed(self, payload: Dict[str, Any]) -> ServiceResult:
        data = payload.get("subscription") or {}
        row = self._find_subscription(data.get("id")) if data.get("id") else None
        if row is None:
            return ServiceResult.fail("Assinatura não encontrada", status=404)

        if parse_date(data.get("nextDueDate")):
            row.next_due_date = parse_date(data["nextDueDate"])
        if data.get("cycle"):
            row.cycle = resolve_cycle(data["cycle"])
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        return ServiceResult.ok({"subscription_id": row.external_id, "next_due_date": str(row.next_due_date)})

    def handle_subscription_updated(self, payload: Dict[str, Any]) -> ServiceResult:
        data = payload.get("subscription") or {}
        row = self._find_subscription(data.get("id")) if data.get("id") else None
        if row is None:
            return ServiceResult.fail("Assinatura não encontrada", status=404)

        # Último evento recebido prevalece
        if data.get("value") is not None:
            row.value = data["value"]
        if data.get("status"):
            active = str(data["status"]).upper() == "ACTIVE"
            row.status = SubscriptionStatus.ACTIVE.value if active else SubscriptionStatus.INACTIVE.value
        if data.get("cycle"):
            row.cycle = resolve_cycle(data["cycle"])
        if parse_date(data.get("nextDueDate")):
            row.next_due_date = parse_date(data["nextDueDate"])
        if data.get("billingType"):
            row.billing_type = str(data["billingType"]).upper()
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        return ServiceResult.ok({"subscription_id": row.external_id, "status": row.status})
