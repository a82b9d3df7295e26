"""
出入库API
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import date
from shopledger.api.deps import get_console, paginate
from shopledger.core.errors import ValidationError
from shopledger.core.timeutil import day_range
from shopledger.schemas.inventory import (
    InventoryLog, MovementItem, MovementRequest, MovementResponse, MovementType
)
from shopledger.services.console import Console

router = APIRouter(prefix="/api/inventory", tags=["出入库管理"])


@router.get("/logs", response_model=List[InventoryLog])
def get_logs(
    skip: int = 0,
    limit: int = 100,
    product_id: Optional[str] = None,
    type: Optional[MovementType] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = Query(None, description="开始日期"),
    end_date: Optional[date] = Query(None, description="结束日期"),
    console: Console = Depends(get_console)
):
    """获取出入库流水（按交易日期倒序）"""
    logs = sorted(console.snapshot("logs"), key=lambda log: log.date, reverse=True)

    if product_id:
        logs = [log for log in logs if log.product_id == product_id]

    if type:
        logs = [log for log in logs if log.type == type]

    # 按商品名称、单据号或供货商/客户名称搜索
    if search:
        term = search.lower()
        logs = [
            log for log in logs
            if term in log.product_name.lower()
            or term in (log.reference_doc or "").lower()
            or term in (log.supplier or "").lower()
        ]

    if start_date or end_date:
        start, end = day_range(start_date or date.min, end_date or date.max)
        logs = [log for log in logs if start <= log.date <= end]

    return paginate(logs, skip, limit)


@router.post("/movements", response_model=MovementResponse)
def create_movement(request: MovementRequest, console: Console = Depends(get_console)):
    """入库或出库

    入库会按供货商名称增加欠款；出库会自动生成一张已送达的订单。
    """
    products = {p.id: p for p in console.snapshot("products")}
    missing = [line.product_id for line in request.items if line.product_id not in products]
    if missing:
        raise ValidationError(f"商品不存在：{'、'.join(missing)}")

    items = [
        MovementItem(
            product=products[line.product_id],
            quantity=line.quantity,
            price=line.price,
            new_selling_price=line.new_selling_price,
        )
        for line in request.items
    ]
    return console.inventory_update(
        items,
        request.type,
        partner=request.supplier,
        reference_doc=request.reference_doc,
        note=request.note,
        date=request.date,
        paid_amount=request.paid_amount,
        discount_amount=request.discount_amount,
        promotion_id=request.promotion_id,
    )
