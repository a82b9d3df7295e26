"""
测试公共夹具

数据库测试使用内存 SQLite（StaticPool 保证所有会话共用同一个连接）。
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopledger import models  # noqa: F401  注册所有表
from shopledger.db.database import Base
from shopledger.schemas.inventory import InventoryLog, MovementItem, MovementType
from shopledger.schemas.product import Product
from shopledger.services.console import Console
from shopledger.services.gateway import StoreGateway


def make_product(**overrides) -> Product:
    values = {
        "id": "P1",
        "code": "SP-1",
        "name": "测试商品",
        "price": Decimal("5000"),
        "import_price": Decimal("1000"),
        "stock": 10,
    }
    values.update(overrides)
    return Product(**values)


def make_item(product: Product, quantity: int, price, new_selling_price=None) -> MovementItem:
    return MovementItem(
        product=product,
        quantity=quantity,
        price=Decimal(str(price)),
        new_selling_price=new_selling_price,
    )


def make_log(log_id: str, product_id: str, movement_type: MovementType, quantity: int,
             old_stock: int, new_stock: int, when: datetime, price="0", **overrides) -> InventoryLog:
    values = {
        "id": log_id,
        "product_id": product_id,
        "product_name": "测试商品",
        "type": movement_type,
        "quantity": quantity,
        "old_stock": old_stock,
        "new_stock": new_stock,
        "price": Decimal(price),
        "date": when,
        "created_at": when,
    }
    values.update(overrides)
    return InventoryLog(**values)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def gateway(session_factory):
    return StoreGateway(session_factory)


@pytest.fixture
def console(gateway):
    console = Console(gateway)
    console.load()
    return console
