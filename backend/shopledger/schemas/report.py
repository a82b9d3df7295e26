"""
报表相关的Pydantic模型
"""
from pydantic import BaseModel, Field
from typing import List
from datetime import date
from decimal import Decimal


class ValuationRow(BaseModel):
    """库存价值（汇总）行"""
    id: str
    code: str
    name: str
    category: str
    unit: str
    stock: int
    import_price: Decimal = Field(..., description="成本价")
    price: Decimal = Field(..., description="销售价")
    total_import_value: Decimal = Field(..., description="库存成本（库存×成本价）")
    total_selling_value: Decimal = Field(..., description="预计销售额（库存×销售价）")
    potential_profit: Decimal = Field(..., description="预计利润")


class ValuationReport(BaseModel):
    """库存价值报表"""
    rows: List[ValuationRow]
    total_products: int
    total_stock: int
    total_import_value: Decimal
    total_selling_value: Decimal
    potential_profit: Decimal
    profit_margin: Decimal = Field(..., description="预计利润率（%，相对库存成本）")


class MovementTotals(BaseModel):
    """进销存合计"""
    opening_stock: int = Field(0, description="期初库存")
    opening_value: Decimal = Field(Decimal("0"), description="期初金额")
    import_qty: int = Field(0, description="本期入库数量")
    import_value: Decimal = Field(Decimal("0"), description="本期入库金额（实际进价）")
    export_qty: int = Field(0, description="本期出库数量")
    export_value: Decimal = Field(Decimal("0"), description="本期出库成本（当前成本价）")
    closing_stock: int = Field(0, description="期末库存")
    closing_value: Decimal = Field(Decimal("0"), description="期末金额")


class MovementRow(MovementTotals):
    """进销存明细行"""
    id: str
    code: str
    name: str
    unit: str


class MovementReport(BaseModel):
    """进销存（期初/入库/出库/期末）报表"""
    start_date: date
    end_date: date
    rows: List[MovementRow]
    totals: MovementTotals


class SalesProfitTotals(BaseModel):
    """销售利润合计"""
    qty_sold: int = 0
    revenue: Decimal = Decimal("0")
    cogs: Decimal = Field(Decimal("0"), description="销售成本")
    profit: Decimal = Decimal("0")


class SalesProfitRow(SalesProfitTotals):
    """销售利润行"""
    id: str
    code: str
    name: str
    margin: Decimal = Field(..., description="利润率（%，相对销售额）")


class SalesProfitReport(BaseModel):
    """销售利润报表"""
    start_date: date
    end_date: date
    rows: List[SalesProfitRow]
    totals: SalesProfitTotals


class MonthlyPoint(BaseModel):
    """月度数据"""
    year: int
    month: int
    label: str
    revenue: Decimal
    profit: Decimal
    orders: int


class GrowthStats(BaseModel):
    """本月环比增长（%）"""
    revenue: Decimal
    profit: Decimal
    orders: Decimal


class DashboardReport(BaseModel):
    """首页概览"""
    total_revenue: Decimal = Field(..., description="累计销售额（未取消订单）")
    total_profit: Decimal = Field(..., description="累计利润（按当前成本价估算）")
    total_orders: int
    monthly: List[MonthlyPoint]
    growth: GrowthStats
    total_stock: int
    total_inventory_value: Decimal
    unique_customers: int
