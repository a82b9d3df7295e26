"""
供货商相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from shopledger.core.timeutil import format_datetime_local
from shopledger.schemas.inventory import InventoryLog


class SupplierBase(BaseModel):
    """供货商基础模型"""
    code: str = Field("", description="供货商编码", max_length=50)
    name: str = Field(..., description="供货商名称", max_length=200)
    email: str = Field("", description="邮箱", max_length=255)
    phone: str = Field("", description="联系电话", max_length=20)
    address: str = Field("", description="地址", max_length=255)


class SupplierCreate(SupplierBase):
    """创建供货商模型"""
    id: Optional[str] = Field(None, description="供货商ID", max_length=64)
    debt: Decimal = Field(Decimal("0"), description="期初欠款")


class SupplierUpdate(BaseModel):
    """更新供货商模型（欠款请通过付款接口调整）"""
    code: Optional[str] = Field(None, description="供货商编码", max_length=50)
    name: Optional[str] = Field(None, description="供货商名称", max_length=200)
    email: Optional[str] = Field(None, description="邮箱", max_length=255)
    phone: Optional[str] = Field(None, description="联系电话", max_length=20)
    address: Optional[str] = Field(None, description="地址", max_length=255)


class Supplier(SupplierBase):
    """供货商"""
    id: str
    debt: Decimal = Field(Decimal("0"), description="应付欠款")
    total_purchased: Decimal = Field(Decimal("0"), description="累计进货金额")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_serializer('created_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)


class DebtPayment(BaseModel):
    """供货商付款"""
    amount: Decimal = Field(..., description="付款金额")


class SupplierHistoryResponse(BaseModel):
    """供货商进货历史"""
    supplier_id: str
    supplier_name: str
    logs: List[InventoryLog]
    total_imports: int = Field(..., description="入库次数")
    total_quantity: int = Field(..., description="入库总数量")
    total_value: Decimal = Field(..., description="入库总金额")
