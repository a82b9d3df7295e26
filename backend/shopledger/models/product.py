"""
商品模型
"""
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, Index
from sqlalchemy.sql import func
from shopledger.db.database import Base


class Product(Base):
    """商品表"""
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, index=True)
    code = Column(String(50), default="", comment="商品编码")
    name = Column(String(200), nullable=False, index=True, comment="名称")
    model = Column(String(100), comment="型号")
    unit = Column(String(20), default="个", comment="单位")
    category = Column(String(100), default="其他", comment="分类")
    origin = Column(String(100), comment="产地")
    description = Column(Text, comment="描述")
    image_url = Column(String(500), comment="图片地址")
    catalog_url = Column(String(500), comment="产品目录地址")
    price = Column(Numeric(14, 2), nullable=False, default=0, comment="销售价")
    import_price = Column(Numeric(14, 2), nullable=False, default=0, comment="成本价（加权平均进货价）")
    stock = Column(Integer, nullable=False, default=0, comment="库存")
    batch_number = Column(String(100), comment="批号")
    expiry_date = Column(Date, comment="有效期")
    created_at = Column(DateTime, server_default=func.now(), nullable=False, comment="创建时间")

    __table_args__ = (
        Index("idx_products_code", "code"),
    )
