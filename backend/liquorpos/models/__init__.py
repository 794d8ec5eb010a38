from .auth import User, SessionToken
from .catalog import Brand, Category, Product, ProductVariant
from .inventory import InventoryLocation, StockLevel, InventoryTransaction
from .purchasing import Distributor, PurchaseOrder, POItem, ReceivingSession, ReceivedItem
from .sales import Customer, Tab, TabItem, Sale, SaleItem

__all__ = [
    'User', 'SessionToken',
    'Brand', 'Category', 'Product', 'ProductVariant',
    'InventoryLocation', 'StockLevel', 'InventoryTransaction',
    'Distributor', 'PurchaseOrder', 'POItem', 'ReceivingSession', 'ReceivedItem',
    'Customer', 'Tab', 'TabItem', 'Sale', 'SaleItem',
]
