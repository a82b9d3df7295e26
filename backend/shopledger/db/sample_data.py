"""
示例数据
未配置数据库时由网关返回，也可用于初始化空数据库
"""
from datetime import datetime
from decimal import Decimal
from typing import List

from shopledger.schemas.inventory import InventoryLog, MovementType
from shopledger.schemas.order import Order, OrderItem, OrderStatus
from shopledger.schemas.product import Product
from shopledger.schemas.supplier import Supplier
from shopledger.schemas.user import User, UserRole


def sample_products() -> List[Product]:
    return [
        Product(id="P001", code="SP001", name="纯棉基础T恤", unit="件", category="服装",
                origin="中国", price=Decimal("250000"), import_price=Decimal("150000"), stock=120),
        Product(id="P002", code="SP002", name="修身牛仔裤", unit="条", category="服装",
                origin="中国", price=Decimal("450000"), import_price=Decimal("280000"), stock=50),
        Product(id="P003", code="SP003", name="运动跑鞋", unit="双", category="鞋类",
                origin="韩国", price=Decimal("1200000"), import_price=Decimal("800000"), stock=30),
        Product(id="P004", code="SP004", name="防水电脑双肩包", unit="个", category="配件",
                origin="中国", price=Decimal("650000"), import_price=Decimal("400000"), stock=45),
        Product(id="P005", code="SP005", name="智能手表二代", unit="块", category="电子产品",
                origin="美国", price=Decimal("3500000"), import_price=Decimal("2800000"), stock=15),
    ]


def sample_orders() -> List[Order]:
    return [
        Order(
            id="ORD-2023-001", customer_id="C001", customer_name="张伟",
            items=[OrderItem(product_id="P001", product_name="纯棉基础T恤",
                             quantity=2, price=Decimal("250000"))],
            total_amount=Decimal("500000"), final_amount=Decimal("500000"),
            status=OrderStatus.DELIVERED, date=datetime(2023, 10, 15, 9, 30),
        ),
        Order(
            id="ORD-2023-002", customer_id="C002", customer_name="李娜",
            items=[OrderItem(product_id="P005", product_name="智能手表二代",
                             quantity=1, price=Decimal("3500000"))],
            total_amount=Decimal("3500000"), final_amount=Decimal("3500000"),
            status=OrderStatus.SHIPPING, date=datetime(2023, 10, 20, 14, 15),
        ),
        Order(
            id="ORD-2023-003", customer_id="C003", customer_name="王磊",
            items=[
                OrderItem(product_id="P002", product_name="修身牛仔裤",
                          quantity=1, price=Decimal("450000")),
                OrderItem(product_id="P004", product_name="防水电脑双肩包",
                          quantity=1, price=Decimal("650000")),
            ],
            total_amount=Decimal("1100000"), final_amount=Decimal("1100000"),
            status=OrderStatus.PENDING, date=datetime(2023, 10, 25, 10, 0),
        ),
    ]


def sample_logs() -> List[InventoryLog]:
    return [
        InventoryLog(
            id="LOG-002", product_id="P003", product_name="运动跑鞋",
            type=MovementType.IMPORT, quantity=10, old_stock=20, new_stock=30,
            price=Decimal("800000"), supplier="东方鞋业", reference_doc="PN-0002",
            note="补货", date=datetime(2023, 10, 12, 8, 0),
            created_at=datetime(2023, 10, 12, 8, 0),
        ),
        InventoryLog(
            id="LOG-001", product_id="P001", product_name="纯棉基础T恤",
            type=MovementType.IMPORT, quantity=50, old_stock=70, new_stock=120,
            price=Decimal("150000"), supplier="华南服装厂", reference_doc="PN-0001",
            note="月初进货", date=datetime(2023, 10, 1, 9, 0),
            created_at=datetime(2023, 10, 1, 9, 0),
        ),
    ]


def sample_suppliers() -> List[Supplier]:
    return [
        Supplier(id="S001", code="NCC001", name="华南服装厂", phone="0901234567",
                 address="广州市白云区", debt=Decimal("0"), total_purchased=Decimal("7500000")),
        Supplier(id="S002", code="NCC002", name="东方鞋业", phone="0912345678",
                 address="福建省晋江市", debt=Decimal("2000000"), total_purchased=Decimal("8000000")),
    ]


def sample_users() -> List[User]:
    return [
        User(id="U001", email="admin@shopledger.vn", name="管理员", role=UserRole.ADMIN),
        User(id="U002", email="staff@shopledger.vn", name="销售员", role=UserRole.STAFF,
             permissions=["VIEW_DASHBOARD", "VIEW_ORDERS", "VIEW_PRODUCTS"]),
    ]
