from app.services.customer_sync import CustomerReconciler
from app.services.gateway import GatewayClient, GatewayError
from app.services.seller_subscription import SellerSubscriptionService
from app.services.shopper_subscription import ShopperSubscriptionService
from app.services.subscription_access import SubscriptionAccessService
from app.services.webhook import WebhookEventRouter

__all__ = [
    "CustomerReconciler",
    "GatewayClient",
    "GatewayError",
    "SellerSubscriptionService",
    "ShopperSubscriptionService",
    "SubscriptionAccessService",
    "WebhookEventRouter",
]
