from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.deps import (
    get_seller_service,
    get_shopper_service,
    require_active_seller_subscription,
)
from app.models.subscription import SellerSubscription
from app.schemas.subscription import (
    BillingInfo,
    SellerSubscriptionCancel,
    SellerSubscriptionCreate,
    SellerSubscriptionRead,
    SellerSubscriptionRetry,
    ShopperSubscriptionCreate,
    SubscriptionUpdate,
)
from app.services.results import ServiceResult
from app.services.seller_subscription import SellerSubscriptionService
from app.services.shopper_subscription import ShopperSubscriptionService
from app.services.subscription_lifecycle import SubscriptionLifecycleService
from app.utils.request_ip import get_client_ip

router = APIRouter(tags=["subscriptions"])

SubscriptionKind = Literal["seller", "shopper"]


def _respond(result: ServiceResult) -> dict[str, Any]:
    if not result.success:
        raise HTTPException(status_code=result.status, detail=result.to_dict())
    return result.to_dict()


def _billing_info(request: Request, billing_info: BillingInfo | None) -> dict[str, Any]:
    data = billing_info.model_dump(exclude_none=True) if billing_info else {}
    if not data.get("remoteIp"):
        remote_ip = get_client_ip(request)
        if remote_ip:
            data["remoteIp"] = remote_ip
    return data


def _service_for(
    kind: SubscriptionKind,
    sellers: SellerSubscriptionService,
    shoppers: ShopperSubscriptionService,
) -> SubscriptionLifecycleService:
    return sellers if kind == "seller" else shoppers


# ===============================================================
# SELLERS
# ===============================================================
@router.post("/sellers/{seller_id}/subscriptions", status_code=status.HTTP_201_CREATED)
def create_seller_subscription(
    seller_id: int,
    payload: SellerSubscriptionCreate,
    request: Request,
    service: SellerSubscriptionService = Depends(get_seller_service),
) -> dict[str, Any]:
    plan_data = payload.model_dump(exclude_none=True, exclude={"billing_info"})
    return _respond(service.create_subscription(seller_id, plan_data, _billing_info(request, payload.billing_info)))


@router.get("/sellers/{seller_id}/subscriptions")
def list_seller_subscriptions(
    seller_id: int,
    service: SellerSubscriptionService = Depends(get_seller_service),
) -> dict[str, Any]:
    return _respond(service.get_by_seller_id(seller_id))


@router.get("/sellers/{seller_id}/subscriptions/active")
def get_active_seller_subscription(
    seller_id: int,
    service: SellerSubscriptionService = Depends(get_seller_service),
) -> dict[str, Any]:
    return _respond(service.get_active_subscription(seller_id))


@router.post("/sellers/{seller_id}/subscriptions/cancel")
def cancel_seller_subscription(
    seller_id: int,
    payload: SellerSubscriptionCancel,
    service: SellerSubscriptionService = Depends(get_seller_service),
) -> dict[str, Any]:
    return _respond(service.cancel_subscription(seller_id, payload.reason))


@router.post("/sellers/{seller_id}/subscriptions/retry", status_code=status.HTTP_201_CREATED)
def retry_seller_subscription(
    seller_id: int,
    payload: SellerSubscriptionRetry,
    request: Request,
    service: SellerSubscriptionService = Depends(get_seller_service),
) -> dict[str, Any]:
    billing_info = _billing_info(request, payload.billing_info)
    return _respond(service.retry_with_payment_method(seller_id, payload.billing_type, billing_info))


@router.get("/sellers/{seller_id}/access", response_model=SellerSubscriptionRead)
def check_seller_access(
    subscription: SellerSubscription = Depends(require_active_seller_subscription),
) -> SellerSubscription:
    return subscription


# ===============================================================
# SHOPPERS / PEDIDOS
# ===============================================================
@router.post("/orders/{order_id}/subscriptions", status_code=status.HTTP_201_CREATED)
def create_order_subscription(
    order_id: int,
    payload: ShopperSubscriptionCreate,
    request: Request,
    service: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    data = payload.model_dump(exclude_none=True, exclude={"billing_info"})
    data["billing_info"] = _billing_info(request, payload.billing_info)
    return _respond(service.create(order_id, data))


@router.get("/orders/{order_id}/subscriptions")
def get_order_subscription(
    order_id: int,
    service: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(service.get_by_order_id(order_id))


@router.get("/shoppers/{shopper_id}/subscriptions")
def list_shopper_subscriptions(
    shopper_id: int,
    service: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(service.get_by_shopper_id(shopper_id))


# ===============================================================
# ASSINATURAS (seller | shopper)
# ===============================================================
@router.get("/subscriptions/{kind}")
def list_subscriptions(
    kind: SubscriptionKind,
    sellers: SellerSubscriptionService = Depends(get_seller_service),
    shoppers: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(_service_for(kind, sellers, shoppers).get_all())


@router.get("/subscriptions/{kind}/external/{external_id}")
def get_subscription_by_external_id(
    kind: SubscriptionKind,
    external_id: str,
    sellers: SellerSubscriptionService = Depends(get_seller_service),
    shoppers: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(_service_for(kind, sellers, shoppers).get_by_external_id(external_id))


@router.get("/subscriptions/{kind}/{subscription_id}")
def get_subscription(
    kind: SubscriptionKind,
    subscription_id: int,
    sellers: SellerSubscriptionService = Depends(get_seller_service),
    shoppers: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(_service_for(kind, sellers, shoppers).get(subscription_id))


@router.put("/subscriptions/{kind}/{subscription_id}")
def update_subscription(
    kind: SubscriptionKind,
    subscription_id: int,
    payload: SubscriptionUpdate,
    sellers: SellerSubscriptionService = Depends(get_seller_service),
    shoppers: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    service = _service_for(kind, sellers, shoppers)
    return _respond(service.update(subscription_id, payload.model_dump(exclude_none=True)))


@router.delete("/subscriptions/{kind}/{subscription_id}")
def delete_subscription(
    kind: SubscriptionKind,
    subscription_id: int,
    sellers: SellerSubscriptionService = Depends(get_seller_service),
    shoppers: ShopperSubscriptionService = Depends(get_shopper_service),
) -> dict[str, Any]:
    return _respond(_service_for(kind, sellers, shoppers).delete(subscription_id))
