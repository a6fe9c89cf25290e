from __future__ import annotations

from typing import Any, Dict, Optional

from app.core.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from app.core.logging_setup import get_logger
from app.models.order import Order, Product
from app.models.shopper import Shopper
from app.models.subscription import ShopperSubscription
from app.schemas.subscription import ShopperSubscriptionRead
from app.services.customer_sync import owner_profile
from app.services.gateway import GatewayError
from app.services.results import ServiceResult
from app.services.subscription_lifecycle import SubscriptionLifecycleService
from app.utils.formatting import map_gateway_status_to_local

logger = get_logger("subscriptions.shopper")

CARD_KEYS = ("billingType", "creditCard", "creditCardToken", "creditCardHolderInfo", "remoteIp")
PLAN_KEYS = ("discount", "interest", "fine", "max_payments", "end_date", "split", "description")


class ShopperSubscriptionService(SubscriptionLifecycleService):
    """Assinaturas de shoppers, exatamente uma (não excluída) por pedido."""

    model = ShopperSubscription
    read_schema = ShopperSubscriptionRead
    owner_field = "shopper_id"

    def _resolve_value(self, order: Order, data: Dict[str, Any]) -> tuple[float | None, Product | None]:
        product = self.session.get(Product, order.product_id) if order.product_id else None
        if data.get("value"):
            return float(data["value"]), product
        if order.value:
            return float(order.value), product
        if not product:
            raise NotFoundError("Produto do pedido não encontrado")
        value = product.get_subscription_price() or product.subscription_price or product.price
        return value, product

    def create(
        self,
        order_id: Any,
        data: Optional[Dict[str, Any]] = None,
        *,
        commit: bool = True,
    ) -> ServiceResult:
        data = dict(data or {})
        try:
            if order_id in (None, ""):
                raise ValidationError("ID do pedido é obrigatório")
            order = self.session.get(Order, order_id)
            if not order:
                raise NotFoundError(f"Pedido {order_id} não encontrado")
            if not order.shopper_id:
                raise ValidationError("Pedido não possui shopper associado")
            shopper = self.session.get(Shopper, order.shopper_id)
            if not shopper:
                raise NotFoundError(f"Shopper com ID {order.shopper_id} não encontrado")

            value, product = self._resolve_value(order, data)

            existing = self.session.exec(
                self._active_query().where(ShopperSubscription.order_id == order.id)
            ).first()
            if existing:
                raise ConflictError("Já existe uma assinatura para este pedido")

            plan = {key: data[key] for key in PLAN_KEYS if data.get(key) is not None}
            plan.update(
                {
                    "plan_name": data.get("plan_name") or f"Assinatura do Pedido #{order.id}",
                    "value": value,
                    "cycle": data.get("cycle") or order.cycle or (product.cycle if product else None),
                    "billing_type": data.get("billing_type") or order.billing_type or "BOLETO",
                    "next_due_date": data.get("next_due_date") or order.next_due_date,
                }
            )
            plan["description"] = plan.get("description") or plan["plan_name"]

            billing_info = {key: data[key] for key in CARD_KEYS if data.get(key)}
            billing_info.update(data.get("billing_info") or {})

            def make_row(created: Dict[str, Any], sent: Dict[str, Any]) -> ShopperSubscription:
                return ShopperSubscription(
                    shopper_id=shopper.id,
                    order_id=order.id,
                    meta_data={"order_id": order.id, "shopper_id": shopper.id},
                    **self._local_row(created, sent, plan["plan_name"]),
                )

            outcome = self._provision(
                owner_profile(shopper),
                plan,
                billing_info,
                f"order_subscription_{order.id}",
                make_row,
                commit=commit,
            )
            if isinstance(outcome, ServiceResult):
                return outcome

            row, created = outcome
            order.external_id = row.external_id
            order.status = map_gateway_status_to_local(created.get("status"))
            self.session.add(order)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
            logger.info("Assinatura %s criada para o pedido %s", row.external_id, order.id)
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
            return self._unexpected(exc, "create")

    def create_subscription(
        self,
        order_id: Any,
        plan_data: Optional[Dict[str, Any]] = None,
        billing_info: Optional[Dict[str, Any]] = None,
        *,
        commit: bool = True,
    ) -> ServiceResult:
        return self.create(order_id, {**(plan_data or {}), "billing_info": billing_info or {}}, commit=commit)

    def get_by_shopper_id(self, shopper_id: Any) -> ServiceResult:
        return self.get_by_owner_id(shopper_id)

    def get_by_order_id(self, order_id: Any) -> ServiceResult:
        if order_id in (None, ""):
            return ServiceResult.from_error(ValidationError("ID do pedido é obrigatório"))
        row = self.session.exec(
            self._active_query().where(ShopperSubscription.order_id == order_id)
        ).first()
        if not row:
            return ServiceResult.from_error(NotFoundError("Assinatura não encontrada para o pedido"))
        return ServiceResult.ok(self.serialize(row))
