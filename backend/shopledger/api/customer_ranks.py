"""
会员等级API
"""
from fastapi import APIRouter, Depends
from typing import List
from shopledger.api.deps import get_console
from shopledger.schemas.customer import CustomerRank
from shopledger.services.console import Console

router = APIRouter(prefix="/api/customer-ranks", tags=["会员等级"])


@router.get("", response_model=List[CustomerRank])
def get_ranks(console: Console = Depends(get_console)):
    """获取会员等级（按最低累计消费从低到高）"""
    return sorted(console.snapshot("ranks"), key=lambda rank: rank.min_spending)


@router.put("", response_model=List[CustomerRank])
def save_ranks(ranks: List[CustomerRank], console: Console = Depends(get_console)):
    """整体保存会员等级"""
    return console.save_ranks(ranks)
