"""
订单管理API
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from datetime import date
from shopledger.api.deps import get_console, paginate
from shopledger.core.timeutil import day_range
from shopledger.schemas.order import Order, OrderCreate, OrderStatus
from shopledger.services.console import Console

router = APIRouter(prefix="/api/orders", tags=["订单管理"])


@router.get("", response_model=List[Order])
def get_orders(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    customer_id: Optional[str] = None,
    start_date: Optional[date] = Query(None, description="开始日期"),
    end_date: Optional[date] = Query(None, description="结束日期"),
    console: Console = Depends(get_console)
):
    """获取订单列表（按下单日期倒序）"""
    orders = sorted(console.snapshot("orders"), key=lambda o: o.date, reverse=True)

    if search:
        term = search.lower()
        orders = [o for o in orders if term in o.id.lower() or term in o.customer_name.lower()]

    if status:
        orders = [o for o in orders if o.status == status]

    if customer_id:
        orders = [o for o in orders if o.customer_id == customer_id]

    if start_date or end_date:
        start, end = day_range(start_date or date.min, end_date or date.max)
        orders = [o for o in orders if start <= o.date <= end]

    return paginate(orders, skip, limit)


@router.get("/{order_id}", response_model=Order)
def get_order(order_id: str, console: Console = Depends(get_console)):
    """获取订单详情"""
    return console.find("orders", order_id)


@router.post("", response_model=Order)
def create_order(order: OrderCreate, console: Console = Depends(get_console)):
    """创建订单（金额按明细和促销计算）"""
    if order.id and any(o.id == order.id for o in console.snapshot("orders")):
        raise HTTPException(status_code=400, detail="订单号已存在")
    if not order.items:
        raise HTTPException(status_code=400, detail="订单明细不能为空")
    return console.save_order(console.build_order(order))


@router.put("/{order_id}", response_model=Order)
def update_order(
    order_id: str,
    order_update: OrderCreate,
    console: Console = Depends(get_console)
):
    """更新订单

    已送达的订单修改后仍为已送达时，数量变化会自动生成出入库流水。
    """
    console.find("orders", order_id)
    if not order_update.items:
        raise HTTPException(status_code=400, detail="订单明细不能为空")
    return console.save_order(console.build_order(order_update, order_id=order_id))


@router.delete("/{order_id}")
def delete_order(order_id: str, console: Console = Depends(get_console)):
    """删除订单（不回退库存）"""
    console.delete_order(order_id)
    return {"message": "订单已删除"}
