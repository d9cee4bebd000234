from .catalog import Product
from .sales import PosTransaction
from .orders import Order
from .auth import User, SessionToken

__all__ = [
    'Product',
    'PosTransaction',
    'Order',
    'User', 'SessionToken',
]
