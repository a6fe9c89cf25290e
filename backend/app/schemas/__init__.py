from app.schemas import common, subscription

__all__ = [
    "common",
    "subscription",
]
