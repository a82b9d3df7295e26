"""
出入库流水模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Index
from shopledger.db.database import Base
from shopledger.core.timeutil import now_local


class InventoryLog(Base):
    """出入库流水表（只追加，不修改不删除）"""
    __tablename__ = "inventory_logs"

    id = Column(String(64), primary_key=True, index=True, comment="流水ID（客户端生成，用于防重复写入）")
    # 不使用外键：商品删除后流水仍然保留
    product_id = Column(String(64), nullable=False, index=True, comment="商品ID")
    type = Column(String(10), nullable=False, comment="类型：IMPORT=入库, EXPORT=出库")
    quantity = Column(Integer, nullable=False, comment="数量")
    old_stock = Column(Integer, nullable=False, comment="变动前库存")
    new_stock = Column(Integer, nullable=False, comment="变动后库存")
    price = Column(Numeric(14, 2), default=0, comment="交易单价（入库为进价，出库为售价）")
    supplier = Column(String(200), comment="供货商或客户名称")
    reference_doc = Column(String(100), comment="单据号")
    note = Column(String(500), comment="备注")
    date = Column(DateTime, nullable=False, index=True, comment="交易日期")
    created_at = Column(DateTime, default=now_local, nullable=False, comment="创建时间")

    __table_args__ = (
        Index("idx_inventory_logs_product_date", "product_id", "date"),
    )
