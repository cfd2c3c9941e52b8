from .auth import User, SessionToken
from .catalog import Product
from .sales import Sale
from .security import SecurityEvent

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Sale',
    'SecurityEvent',
]
