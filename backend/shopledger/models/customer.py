"""
客户模型
"""
from sqlalchemy import Column, String, Numeric, DateTime, Index
from sqlalchemy.sql import func
from shopledger.db.database import Base


class Customer(Base):
    """客户表"""
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True, index=True)
    code = Column(String(50), default="", comment="客户编码")
    name = Column(String(200), nullable=False, comment="姓名")
    email = Column(String(255), comment="邮箱")
    phone = Column(String(20), index=True, comment="电话")
    address = Column(String(255), comment="地址")
    total_spending = Column(Numeric(14, 2), default=0, comment="累计消费（未取消订单的实付金额）")
    created_at = Column(DateTime, server_default=func.now(), nullable=False, comment="创建时间")

    __table_args__ = (
        Index("idx_customers_name", "name"),
    )


class CustomerRank(Base):
    """会员等级表"""
    __tablename__ = "customer_ranks"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False, comment="等级名称")
    min_spending = Column(Numeric(14, 2), nullable=False, default=0, comment="最低累计消费")
    color = Column(String(20), comment="显示颜色")
