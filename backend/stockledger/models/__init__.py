from .inventory import Category, Product, InventoryMovement
from .auth import User, SessionToken
from .audit import AuditLog

__all__ = [
    'Category', 'Product', 'InventoryMovement',
    'User', 'SessionToken',
    'AuditLog',
]
