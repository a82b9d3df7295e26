"""
促销活动相关的Pydantic模型
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal


class PromotionType(str, Enum):
    """优惠类型"""
    DISCOUNT_PERCENT = "DISCOUNT_PERCENT"
    DISCOUNT_AMOUNT = "DISCOUNT_AMOUNT"


class PromotionBase(BaseModel):
    """促销基础模型"""
    code: str = Field(..., description="促销码", max_length=50)
    name: str = Field(..., description="名称", max_length=200)
    type: PromotionType = Field(..., description="优惠类型")
    value: Decimal = Field(..., ge=0, description="优惠值（百分比或金额）")
    min_order_value: Decimal = Field(Decimal("0"), ge=0, description="最低订单金额")
    min_customer_spending: Decimal = Field(Decimal("0"), ge=0, description="最低累计消费")
    start_date: Optional[date] = Field(None, description="开始日期")
    end_date: Optional[date] = Field(None, description="结束日期")
    is_active: bool = Field(True, description="是否启用")
    description: Optional[str] = Field(None, description="说明")


class PromotionCreate(PromotionBase):
    """创建促销模型"""
    id: Optional[str] = Field(None, description="促销ID", max_length=64)


class Promotion(PromotionBase):
    """促销活动"""
    id: str

    class Config:
        from_attributes = True
