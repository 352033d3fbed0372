"""Order lookups against the commerce subsystem."""

from .gateway import OrderGateway, PostgresOrderGateway
from .locator import OrderLocator
from .models import BuyerContact, OrderView, SellerContact

__all__ = [
    "BuyerContact",
    "OrderGateway",
    "OrderLocator",
    "OrderView",
    "PostgresOrderGateway",
    "SellerContact",
]
