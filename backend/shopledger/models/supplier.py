"""
供货商模型
"""
from sqlalchemy import Column, String, Numeric, DateTime, Index
from sqlalchemy.sql import func
from shopledger.db.database import Base


class Supplier(Base):
    """供货商表"""
    __tablename__ = "suppliers"

    id = Column(String(64), primary_key=True, index=True)
    code = Column(String(50), default="", comment="供货商编码")
    name = Column(String(200), nullable=False, index=True, comment="供货商名称")
    email = Column(String(255), comment="邮箱")
    phone = Column(String(20), comment="联系电话")
    address = Column(String(255), comment="地址")
    debt = Column(Numeric(14, 2), default=0, comment="应付欠款")
    total_purchased = Column(Numeric(14, 2), default=0, comment="累计进货金额")
    created_at = Column(DateTime, server_default=func.now(), nullable=False, comment="创建时间")

    __table_args__ = (
        Index("idx_suppliers_phone", "phone"),
    )
