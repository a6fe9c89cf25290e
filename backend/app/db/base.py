# noqa: F401 to ensure models are imported for metadata
from app.models.order import Order, Product
from app.models.payment import Payment
from app.models.seller import Seller
from app.models.shopper import Shopper
from app.models.subscription import SellerSubscription, ShopperSubscription

__all__ = [
    "Order",
    "Product",
    "Payment",
    "Seller",
    "Shopper",
    "SellerSubscription",
    "ShopperSubscription",
]
