# Models
from .product import Product
from .order import Order, OrderItem, OrderStatus
from .cart import Cart, CartItem
from .subscription import Subscription, SubscriptionStatus, Frequency
from .inventory_logs import InventoryLog, ChangeType

__all__ = [
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Cart",
    "CartItem",
    "Subscription",
    "SubscriptionStatus",
    "Frequency",
    "InventoryLog",
    "ChangeType",
]
