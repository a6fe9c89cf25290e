from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from app.core.config import settings
from app.core.errors import ForbiddenError
from app.db.session import get_session
from app.models.subscription import SellerSubscription
from app.services.gateway import GatewayClient
from app.services.seller_subscription import SellerSubscriptionService
from app.services.shopper_subscription import ShopperSubscriptionService
from app.services.subscription_access import SubscriptionAccessService
from app.services.webhook import WebhookEventRouter


def get_db() -> Session:
    yield from get_session()


@lru_cache
def get_gateway() -> GatewayClient:
    return GatewayClient()


def get_seller_service(
    session: Annotated[Session, Depends(get_db)],
    gateway: Annotated[GatewayClient, Depends(get_gateway)],
) -> SellerSubscriptionService:
    return SellerSubscriptionService(session, gateway)


def get_shopper_service(
    session: Annotated[Session, Depends(get_db)],
    gateway: Annotated[GatewayClient, Depends(get_gateway)],
) -> ShopperSubscriptionService:
    return ShopperSubscriptionService(session, gateway)


def get_webhook_router(
    session: Annotated[Session, Depends(get_db)],
    gateway: Annotated[GatewayClient, Depends(get_gateway)],
) -> WebhookEventRouter:
    return WebhookEventRouter(session, gateway)


def verify_webhook_token(
    asaas_access_token: Annotated[str | None, Header(alias="asaas-access-token")] = None,
) -> None:
    if not settings.webhook_auth_token:
        return
    if not asaas_access_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook token")
    if asaas_access_token != settings.webhook_auth_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook token")


def require_active_seller_subscription(
    seller_id: int,
    session: Annotated[Session, Depends(get_db)],
) -> SellerSubscription:
    try:
        return SubscriptionAccessService(session).validate_seller(seller_id)
    except ForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc
