"""
订单模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from shopledger.db.database import Base


class Order(Base):
    """订单表"""
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, index=True, comment="订单号（同时作为单据号）")
    customer_id = Column(String(64), default="GUEST", index=True, comment="客户ID，散客为GUEST")
    customer_name = Column(String(200), default="散客", comment="客户名称")
    total_amount = Column(Numeric(14, 2), nullable=False, default=0, comment="总金额")
    discount_amount = Column(Numeric(14, 2), default=0, comment="优惠金额")
    final_amount = Column(Numeric(14, 2), default=0, comment="实付金额")
    promotion_id = Column(String(64), comment="促销ID")
    status = Column(String(20), nullable=False, default="PENDING", index=True, comment="状态")
    created_at = Column(DateTime, nullable=False, index=True, comment="下单日期")

    # 关系
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_orders_status_created_at", "status", "created_at"),
    )


class OrderItem(Base):
    """订单明细表"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True, comment="订单ID")
    # 商品可能已删除，只保存快照
    product_id = Column(String(64), nullable=False, index=True, comment="商品ID")
    product_name = Column(String(200), comment="商品名称（下单时）")
    quantity = Column(Integer, nullable=False, comment="数量")
    price = Column(Numeric(14, 2), nullable=False, comment="售价（下单时）")

    # 关系
    order = relationship("Order", back_populates="items")
