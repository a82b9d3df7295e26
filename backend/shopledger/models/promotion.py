"""
促销活动模型
"""
from sqlalchemy import Column, String, Numeric, Boolean, Date, DateTime, Text
from sqlalchemy.sql import func
from shopledger.db.database import Base


class Promotion(Base):
    """促销活动表"""
    __tablename__ = "promotions"

    id = Column(String(64), primary_key=True, index=True)
    code = Column(String(50), nullable=False, index=True, comment="促销码")
    name = Column(String(200), nullable=False, comment="名称")
    type = Column(String(20), nullable=False, comment="类型：DISCOUNT_PERCENT=按比例, DISCOUNT_AMOUNT=固定金额")
    value = Column(Numeric(14, 2), nullable=False, default=0, comment="优惠值")
    min_order_value = Column(Numeric(14, 2), default=0, comment="最低订单金额")
    min_customer_spending = Column(Numeric(14, 2), default=0, comment="最低累计消费")
    start_date = Column(Date, comment="开始日期")
    end_date = Column(Date, comment="结束日期")
    is_active = Column(Boolean, default=True, comment="是否启用")
    description = Column(Text, comment="说明")
    created_at = Column(DateTime, server_default=func.now(), nullable=False, comment="创建时间")
