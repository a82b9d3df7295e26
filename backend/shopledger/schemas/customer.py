"""
客户相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import datetime
from decimal import Decimal
from shopledger.core.timeutil import format_datetime_local


class CustomerBase(BaseModel):
    """客户基础模型"""
    code: str = Field("", description="客户编码", max_length=50)
    name: str = Field(..., description="姓名", max_length=200)
    email: str = Field("", description="邮箱", max_length=255)
    phone: str = Field("", description="电话", max_length=20)
    address: str = Field("", description="地址", max_length=255)


class CustomerCreate(CustomerBase):
    """创建客户模型"""
    id: Optional[str] = Field(None, description="客户ID", max_length=64)


class CustomerUpdate(BaseModel):
    """更新客户模型"""
    code: Optional[str] = Field(None, description="客户编码", max_length=50)
    name: Optional[str] = Field(None, description="姓名", max_length=200)
    email: Optional[str] = Field(None, description="邮箱", max_length=255)
    phone: Optional[str] = Field(None, description="电话", max_length=20)
    address: Optional[str] = Field(None, description="地址", max_length=255)


class Customer(CustomerBase):
    """客户"""
    id: str
    total_spending: Decimal = Field(Decimal("0"), description="累计消费")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_serializer('created_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)


class CustomerRank(BaseModel):
    """会员等级"""
    id: str = Field(..., description="等级ID", max_length=64)
    name: str = Field(..., description="等级名称", max_length=100)
    min_spending: Decimal = Field(Decimal("0"), ge=0, description="最低累计消费")
    color: Optional[str] = Field(None, description="显示颜色", max_length=20)

    class Config:
        from_attributes = True
