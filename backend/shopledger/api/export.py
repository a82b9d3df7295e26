"""
数据导出API
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from typing import Optional
from datetime import date
import io
import csv
from shopledger.api.deps import get_console
from shopledger.core.timeutil import now_local
from shopledger.services.console import Console

router = APIRouter(prefix="/api/export", tags=["数据导出"])


def generate_csv(data, headers):
    """生成CSV数据"""
    output = io.StringIO()
    writer = csv.writer(output)

    # 写入表头
    writer.writerow(headers)

    # 写入数据
    for row in data:
        writer.writerow(row)

    output.seek(0)
    return output.getvalue()


def csv_response(csv_content: str, name: str) -> StreamingResponse:
    """以带BOM的UTF-8返回，Excel可直接打开"""
    return StreamingResponse(
        io.BytesIO(csv_content.encode("utf-8-sig")),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={name}_{now_local().strftime('%Y%m%d_%H%M%S')}.csv"
        }
    )


@router.get("/valuation")
def export_valuation(
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """导出库存价值汇总"""
    report = console.valuation(search)

    headers = ["商品编码", "商品名称", "分类", "单位", "库存", "成本价", "销售价", "库存成本", "预计销售额", "预计利润"]
    data = []

    for row in report.rows:
        data.append([
            row.code,
            row.name,
            row.category,
            row.unit,
            row.stock,
            row.import_price,
            row.price,
            row.total_import_value,
            row.total_selling_value,
            row.potential_profit
        ])

    data.append([
        "合计", "", "", "", report.total_stock, "", "",
        report.total_import_value, report.total_selling_value, report.potential_profit
    ])

    return csv_response(generate_csv(data, headers), "valuation")


@router.get("/movement")
def export_movement(
    start_date: date = Query(..., description="开始日期"),
    end_date: date = Query(..., description="结束日期"),
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """导出进销存明细"""
    report = console.movement(start_date, end_date, search)

    headers = [
        "商品编码", "商品名称", "单位", "期初数量", "期初金额", "入库数量", "入库金额",
        "出库数量", "出库金额", "期末数量", "期末金额"
    ]
    data = []

    for row in report.rows:
        data.append([
            row.code,
            row.name,
            row.unit,
            row.opening_stock,
            row.opening_value,
            row.import_qty,
            row.import_value,
            row.export_qty,
            row.export_value,
            row.closing_stock,
            row.closing_value
        ])

    totals = report.totals
    data.append([
        "合计", "", "",
        totals.opening_stock, totals.opening_value,
        totals.import_qty, totals.import_value,
        totals.export_qty, totals.export_value,
        totals.closing_stock, totals.closing_value
    ])

    return csv_response(generate_csv(data, headers), "movement")


@router.get("/sales-profit")
def export_sales_profit(
    start_date: date = Query(..., description="开始日期"),
    end_date: date = Query(..., description="结束日期"),
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """导出销售利润"""
    report = console.sales_profit(start_date, end_date, search)

    headers = ["商品编码", "商品名称", "销售数量", "销售额", "销售成本", "利润", "利润率(%)"]
    data = []

    for row in report.rows:
        data.append([
            row.code,
            row.name,
            row.qty_sold,
            row.revenue,
            row.cogs,
            row.profit,
            row.margin
        ])

    totals = report.totals
    data.append(["合计", "", totals.qty_sold, totals.revenue, totals.cogs, totals.profit, ""])

    return csv_response(generate_csv(data, headers), "sales_profit")
