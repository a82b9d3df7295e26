"""
数据库模型
"""
from shopledger.models.product import Product
from shopledger.models.inventory_log import InventoryLog
from shopledger.models.order import Order, OrderItem
from shopledger.models.customer import Customer, CustomerRank
from shopledger.models.supplier import Supplier
from shopledger.models.user import User
from shopledger.models.promotion import Promotion

__all__ = [
    "Product",
    "InventoryLog",
    "Order",
    "OrderItem",
    "Customer",
    "CustomerRank",
    "Supplier",
    "User",
    "Promotion",
]
