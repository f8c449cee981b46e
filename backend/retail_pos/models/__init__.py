from .catalog import Category, Product, PriceVariant
from .sales import Transaction, TransactionItem, PaymentRecord

__all__ = [
    'Category', 'Product', 'PriceVariant',
    'Transaction', 'TransactionItem', 'PaymentRecord',
]
