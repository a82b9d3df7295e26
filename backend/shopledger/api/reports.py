"""
报表API
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from datetime import date
from shopledger.api.deps import get_console
from shopledger.schemas.report import (
    DashboardReport, MovementReport, SalesProfitReport, ValuationReport
)
from shopledger.services.console import Console

router = APIRouter(prefix="/api/reports", tags=["报表"])


@router.get("/valuation", response_model=ValuationReport)
def get_valuation(
    search: Optional[str] = None,
    sort_key: Optional[str] = Query("total_import_value", description="排序字段"),
    descending: bool = True,
    console: Console = Depends(get_console)
):
    """库存价值汇总"""
    return console.valuation(search, sort_key, descending)


@router.get("/movement", response_model=MovementReport)
def get_movement(
    start_date: date = Query(..., description="开始日期"),
    end_date: date = Query(..., description="结束日期"),
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """进销存明细（期初、入库、出库、期末）"""
    return console.movement(start_date, end_date, search)


@router.get("/sales-profit", response_model=SalesProfitReport)
def get_sales_profit(
    start_date: date = Query(..., description="开始日期"),
    end_date: date = Query(..., description="结束日期"),
    search: Optional[str] = None,
    sort_key: Optional[str] = Query("revenue", description="排序字段"),
    descending: bool = True,
    console: Console = Depends(get_console)
):
    """销售利润"""
    return console.sales_profit(start_date, end_date, search, sort_key, descending)


@router.get("/dashboard", response_model=DashboardReport)
def get_dashboard(console: Console = Depends(get_console)):
    """首页概览"""
    return console.dashboard()
