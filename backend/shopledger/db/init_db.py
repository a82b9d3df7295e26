"""
数据库初始化脚本
创建所有表，可选写入示例数据
"""
import logging

from sqlalchemy import func, insert, select

from shopledger.core.config import SEED_SAMPLE_DATA
from shopledger.db import sample_data
from shopledger.db.database import Base, engine as default_engine
from shopledger import models
from shopledger.services import mapping

logger = logging.getLogger(__name__)


def seed_sample_data(engine) -> bool:
    """商品表为空时写入示例数据，返回是否写入"""
    products = models.Product.__table__
    with engine.begin() as conn:
        if conn.execute(select(func.count()).select_from(products)).scalar():
            return False
        conn.execute(insert(products), [mapping.product_to_row(p) for p in sample_data.sample_products()])
        conn.execute(
            insert(models.Supplier.__table__),
            [mapping.supplier_to_row(s) for s in sample_data.sample_suppliers()],
        )
        conn.execute(
            insert(models.User.__table__),
            [mapping.user_to_row(u) for u in sample_data.sample_users()],
        )
        for order in sample_data.sample_orders():
            conn.execute(insert(models.Order.__table__).values(**mapping.order_to_row(order)))
            conn.execute(insert(models.OrderItem.__table__), mapping.order_items_to_rows(order))
        conn.execute(
            insert(models.InventoryLog.__table__),
            [mapping.log_to_row(log) for log in sample_data.sample_logs()],
        )
    logger.info("已写入示例数据")
    return True


def init_db(engine=None, seed: bool = SEED_SAMPLE_DATA):
    """初始化数据库，创建所有表"""
    engine = engine or default_engine
    if engine is None:
        raise RuntimeError("未配置数据库（DATABASE_URL）")
    Base.metadata.create_all(bind=engine)
    logger.info("数据库表创建完成")
    if seed:
        seed_sample_data(engine)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    init_db()
