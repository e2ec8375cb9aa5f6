from .catalog import Category, Product, Service
from .sales import SaleKind, SellHistory, Transaction
from .debits import Debit, DebitItem, DebitStatus
from .expenses import DailyExpense, SupplyExpense

__all__ = [
    'Category', 'Product', 'Service',
    'SaleKind', 'SellHistory', 'Transaction',
    'Debit', 'DebitItem', 'DebitStatus',
    'DailyExpense', 'SupplyExpense',
]
