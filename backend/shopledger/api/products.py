"""
商品管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional
from shopledger.api.deps import get_actor, get_console, paginate
from shopledger.schemas.product import Product, ProductCreate, ProductUpdate
from shopledger.schemas.user import User
from shopledger.services.console import Console
from shopledger.services.reports import matches_search

router = APIRouter(prefix="/api/products", tags=["商品管理"])


@router.get("", response_model=List[Product])
def get_products(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    category: Optional[str] = None,
    low_stock: Optional[int] = None,
    console: Console = Depends(get_console)
):
    """获取商品列表"""
    products = console.snapshot("products")

    if search:
        products = [p for p in products if matches_search(search, p.name, p.code)]

    if category:
        products = [p for p in products if p.category == category]

    # 库存不超过指定数量的商品
    if low_stock is not None:
        products = [p for p in products if p.stock <= low_stock]

    return paginate(products, skip, limit)


@router.get("/{product_id}", response_model=Product)
def get_product(product_id: str, console: Console = Depends(get_console)):
    """获取商品详情"""
    return console.find("products", product_id)


@router.post("", response_model=Product)
def create_product(product: ProductCreate, console: Console = Depends(get_console)):
    """创建商品"""
    if product.id and any(p.id == product.id for p in console.snapshot("products")):
        raise HTTPException(status_code=400, detail="商品ID已存在")
    data = product.model_dump(exclude={"id"})
    return console.save_product(Product(id=product.id or "", **data))


@router.put("/{product_id}", response_model=Product)
def update_product(
    product_id: str,
    product_update: ProductUpdate,
    console: Console = Depends(get_console)
):
    """更新商品"""
    db_product = console.find("products", product_id)
    update_data = product_update.model_dump(exclude_unset=True)
    return console.save_product(db_product.model_copy(update=update_data))


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    console: Console = Depends(get_console),
    actor: Optional[User] = Depends(get_actor)
):
    """删除商品（仅管理员；流水保留，商品名称显示为已删除商品）"""
    console.delete_product(product_id, actor)
    return {"message": "商品已删除"}
