from .auth import User, SessionToken, AccountToken, SecurityEvent, AuditLog
from .catalog import Product, InventoryTransaction
from .orders import Order, OrderItem
from .notifications import Notification

__all__ = [
    'User', 'SessionToken', 'AccountToken', 'SecurityEvent', 'AuditLog',
    'Product', 'InventoryTransaction',
    'Order', 'OrderItem',
    'Notification',
]
