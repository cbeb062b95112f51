from .auth import User, SessionToken, ROLES
from .inventory import (
    Product,
    StockHistory,
    LedgerImmutabilityError,
    CATEGORIES,
    UNITS,
    STOCK_ACTIONS,
    DEFAULT_MIN_STOCK_LEVEL,
)
from .sales import Sale, SaleItem, PAYMENT_METHODS, SALE_STATUSES

__all__ = [
    'User', 'SessionToken', 'ROLES',
    'Product', 'StockHistory', 'LedgerImmutabilityError',
    'CATEGORIES', 'UNITS', 'STOCK_ACTIONS', 'DEFAULT_MIN_STOCK_LEVEL',
    'Sale', 'SaleItem', 'PAYMENT_METHODS', 'SALE_STATUSES',
]
