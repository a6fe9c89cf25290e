from . import health, subscriptions, webhooks

__all__ = [
    "health",
    "subscriptions",
    "webhooks",
]
