"""
促销管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional
from shopledger.api.deps import get_console
from shopledger.core.timeutil import now_local
from shopledger.schemas.promotion import Promotion, PromotionCreate
from shopledger.services.console import Console
from shopledger.services.pricing import is_promotion_active

router = APIRouter(prefix="/api/promotions", tags=["促销管理"])


@router.get("", response_model=List[Promotion])
def get_promotions(
    active_only: bool = False,
    console: Console = Depends(get_console)
):
    """获取促销列表，active_only=true 时只返回今天可用的促销"""
    promotions = console.snapshot("promotions")
    if active_only:
        today = now_local().date()
        promotions = [p for p in promotions if is_promotion_active(p, today)]
    return promotions


@router.get("/{promotion_id}", response_model=Promotion)
def get_promotion(promotion_id: str, console: Console = Depends(get_console)):
    """获取促销详情"""
    return console.find("promotions", promotion_id)


@router.post("", response_model=Promotion)
def create_promotion(promotion: PromotionCreate, console: Console = Depends(get_console)):
    """创建促销"""
    existing = console.snapshot("promotions")
    if any(p.code == promotion.code for p in existing):
        raise HTTPException(status_code=400, detail="促销码已存在")
    data = promotion.model_dump(exclude={"id"})
    return console.save_promotion(Promotion(id=promotion.id or "", **data))


@router.put("/{promotion_id}", response_model=Promotion)
def update_promotion(
    promotion_id: str,
    promotion: PromotionCreate,
    console: Console = Depends(get_console)
):
    """更新促销"""
    console.find("promotions", promotion_id)
    data = promotion.model_dump(exclude={"id"})
    return console.save_promotion(Promotion(id=promotion_id, **data))


@router.delete("/{promotion_id}")
def delete_promotion(promotion_id: str, console: Console = Depends(get_console)):
    """删除促销"""
    console.delete_promotion(promotion_id)
    return {"message": "促销已删除"}
