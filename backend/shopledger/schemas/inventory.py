"""
出入库相关的Pydantic模型
"""
from enum import Enum
from pydantic import BaseModel, Field, field_serializer, field_validator
from typing import List, NewType, Optional
from datetime import datetime
from decimal import Decimal
from shopledger.core.timeutil import format_datetime_local, to_local_naive
from shopledger.schemas.order import Order
from shopledger.schemas.product import Product

# 弱引用：只按字符串精确匹配，不是外键
# PartnerLabel 与供货商/客户名称比较，DocumentRef 与订单号比较
PartnerLabel = NewType("PartnerLabel", str)
DocumentRef = NewType("DocumentRef", str)

DELETED_PRODUCT_NAME = "已删除商品"


class MovementType(str, Enum):
    """库存变动类型"""
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"


class InventoryLog(BaseModel):
    """出入库流水（只追加）"""
    id: str
    product_id: str
    product_name: str = DELETED_PRODUCT_NAME
    type: MovementType
    quantity: int
    old_stock: int
    new_stock: int
    price: Decimal = Decimal("0")
    supplier: Optional[PartnerLabel] = None
    reference_doc: Optional[DocumentRef] = None
    note: Optional[str] = None
    date: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('date', 'created_at')
    @classmethod
    def normalize_datetime(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value)

    @field_serializer('created_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)


class MovementItem(BaseModel):
    """一行出入库明细"""
    product: Product
    quantity: int = Field(..., gt=0, description="数量")
    price: Decimal = Field(Decimal("0"), ge=0, description="单价（入库为进价，出库为售价）")
    new_selling_price: Optional[Decimal] = Field(None, ge=0, description="新销售价（仅入库）")


class MovementLineRequest(BaseModel):
    """出入库明细请求"""
    product_id: str = Field(..., description="商品ID")
    quantity: int = Field(..., gt=0, description="数量")
    price: Decimal = Field(Decimal("0"), ge=0, description="单价")
    new_selling_price: Optional[Decimal] = Field(None, ge=0, description="新销售价（仅入库）")


class MovementRequest(BaseModel):
    """出入库单请求"""
    type: MovementType = Field(..., description="类型")
    items: List[MovementLineRequest] = Field(..., min_length=1, description="明细列表")
    supplier: str = Field("", description="供货商（入库）或客户（出库）名称", max_length=200)
    reference_doc: str = Field("", description="单据号，出库时留空则自动生成", max_length=100)
    note: str = Field("", description="备注", max_length=500)
    date: Optional[datetime] = Field(None, description="交易日期，默认为当前时间")
    paid_amount: Decimal = Field(Decimal("0"), ge=0, description="本次已付款（入库）")
    discount_amount: Decimal = Field(Decimal("0"), ge=0, description="优惠金额（出库）")
    promotion_id: Optional[str] = Field(None, description="促销ID（出库）")

    @field_validator('date')
    @classmethod
    def normalize_datetime(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value)


class MovementResponse(BaseModel):
    """出入库结果"""
    products: List[Product]
    logs: List[InventoryLog]
    reference_doc: Optional[str] = None
    order: Optional[Order] = Field(None, description="出库自动生成的订单")
