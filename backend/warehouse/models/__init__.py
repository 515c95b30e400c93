from .inventory import Product, StockTransaction
from .auth import User, SessionToken

__all__ = [
    'Product', 'StockTransaction',
    'User', 'SessionToken',
]
