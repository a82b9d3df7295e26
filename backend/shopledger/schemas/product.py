"""
商品相关的Pydantic模型
"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from shopledger.core.timeutil import format_datetime_local


class ProductBase(BaseModel):
    """商品基础模型"""
    code: str = Field("", description="商品编码", max_length=50)
    name: str = Field(..., description="名称", max_length=200)
    model: Optional[str] = Field(None, description="型号", max_length=100)
    unit: str = Field("个", description="单位", max_length=20)
    category: str = Field("其他", description="分类", max_length=100)
    origin: Optional[str] = Field(None, description="产地", max_length=100)
    description: Optional[str] = Field(None, description="描述")
    image_url: Optional[str] = Field(None, description="图片地址", max_length=500)
    catalog_url: Optional[str] = Field(None, description="产品目录地址", max_length=500)
    price: Decimal = Field(Decimal("0"), ge=0, description="销售价")
    import_price: Decimal = Field(Decimal("0"), ge=0, description="成本价（加权平均进货价）")
    stock: int = Field(0, description="库存")
    batch_number: Optional[str] = Field(None, description="批号", max_length=100)
    expiry_date: Optional[date] = Field(None, description="有效期")


class ProductCreate(ProductBase):
    """创建商品模型（ID可由客户端指定，TEMP开头的临时ID由服务端替换）"""
    id: Optional[str] = Field(None, description="商品ID", max_length=64)


class ProductUpdate(BaseModel):
    """更新商品模型"""
    code: Optional[str] = Field(None, description="商品编码", max_length=50)
    name: Optional[str] = Field(None, description="名称", max_length=200)
    model: Optional[str] = Field(None, description="型号", max_length=100)
    unit: Optional[str] = Field(None, description="单位", max_length=20)
    category: Optional[str] = Field(None, description="分类", max_length=100)
    origin: Optional[str] = Field(None, description="产地", max_length=100)
    description: Optional[str] = Field(None, description="描述")
    image_url: Optional[str] = Field(None, description="图片地址", max_length=500)
    catalog_url: Optional[str] = Field(None, description="产品目录地址", max_length=500)
    price: Optional[Decimal] = Field(None, ge=0, description="销售价")
    import_price: Optional[Decimal] = Field(None, ge=0, description="成本价")
    stock: Optional[int] = Field(None, description="库存")
    batch_number: Optional[str] = Field(None, description="批号", max_length=100)
    expiry_date: Optional[date] = Field(None, description="有效期")


class Product(ProductBase):
    """商品"""
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_serializer('created_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)
