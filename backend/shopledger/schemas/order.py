"""
订单相关的Pydantic模型
"""
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from shopledger.core.timeutil import to_local_naive

GUEST_CUSTOMER_ID = "GUEST"
GUEST_CUSTOMER_NAME = "散客"


class OrderStatus(str, Enum):
    """订单状态：PENDING→CONFIRMED→SHIPPING→DELIVERED，或 CANCELLED"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_STATUS_LABELS = {
    OrderStatus.PENDING: "待处理",
    OrderStatus.CONFIRMED: "已确认",
    OrderStatus.SHIPPING: "配送中",
    OrderStatus.DELIVERED: "已送达",
    OrderStatus.CANCELLED: "已取消",
}


class OrderItem(BaseModel):
    """订单明细"""
    product_id: str = Field(..., description="商品ID")
    product_name: str = Field("", description="商品名称（下单时）")
    quantity: int = Field(..., gt=0, description="数量")
    price: Decimal = Field(..., ge=0, description="售价（下单时）")

    class Config:
        from_attributes = True


class OrderBase(BaseModel):
    """订单基础模型"""
    customer_id: str = Field(GUEST_CUSTOMER_ID, description="客户ID")
    customer_name: str = Field(GUEST_CUSTOMER_NAME, description="客户名称", max_length=200)
    items: List[OrderItem] = Field(default_factory=list, description="明细列表")
    status: OrderStatus = Field(OrderStatus.PENDING, description="状态")
    promotion_id: Optional[str] = Field(None, description="促销ID")


class OrderCreate(OrderBase):
    """创建/更新订单请求（金额由服务端按明细和促销计算）"""
    id: Optional[str] = Field(None, description="订单号", max_length=64)
    date: Optional[datetime] = Field(None, description="下单日期")

    @field_validator('date')
    @classmethod
    def normalize_datetime(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value)


class Order(OrderBase):
    """订单"""
    id: str
    total_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    final_amount: Optional[Decimal] = None
    date: datetime

    class Config:
        from_attributes = True

    @field_validator('date')
    @classmethod
    def normalize_datetime(cls, value: datetime) -> datetime:
        return to_local_naive(value)

    @property
    def payable_amount(self) -> Decimal:
        """实付金额，未记录时取总金额"""
        if self.final_amount:
            return self.final_amount
        return self.total_amount
