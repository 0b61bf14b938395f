from .catalog import Category, Product
from .inventory import InventoryLogEntry
from .orders import Order, OrderLine

__all__ = [
    'Category', 'Product',
    'InventoryLogEntry',
    'Order', 'OrderLine',
]
