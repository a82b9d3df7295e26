"""
报表计算

所有报表都根据商品、流水、订单即时计算，不做缓存。
- 库存价值：库存×成本价、库存×销售价
- 进销存：期初/入库/出库/期末，期末库存由当前库存倒推
- 销售利润：已送达订单 + 未关联订单的出库流水
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from shopledger.core.errors import ValidationError
from shopledger.core.timeutil import day_range, now_local
from shopledger.schemas.inventory import DELETED_PRODUCT_NAME, InventoryLog, MovementType
from shopledger.schemas.order import Order, OrderStatus
from shopledger.schemas.product import Product
from shopledger.schemas.report import (
    DashboardReport, GrowthStats, MonthlyPoint, MovementReport, MovementRow,
    MovementTotals, SalesProfitReport, SalesProfitRow, SalesProfitTotals,
    ValuationReport, ValuationRow,
)
from shopledger.services.ledger import stock_at

PLACEHOLDER_CODE = "---"
ZERO = Decimal("0")


def percent(part: Decimal, whole: Decimal) -> Decimal:
    """百分比，分母为0时返回0"""
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def matches_search(search: Optional[str], name: str, code: Optional[str]) -> bool:
    """名称或编码包含关键字（不区分大小写）"""
    if not search:
        return True
    term = search.lower()
    return term in (name or "").lower() or term in (code or "").lower()


def sort_rows(rows: list, sort_key: Optional[str], descending: bool, row_type) -> list:
    """按指定字段排序，相等时保持原有顺序"""
    if not sort_key:
        return rows
    if sort_key not in row_type.model_fields:
        raise ValidationError(f"不支持的排序字段：{sort_key}")
    return sorted(rows, key=lambda row: getattr(row, sort_key), reverse=descending)


def _check_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError("开始日期不能晚于结束日期")


def _logs_by_product(logs: Iterable[InventoryLog]) -> Dict[str, List[InventoryLog]]:
    grouped: Dict[str, List[InventoryLog]] = {}
    for log in logs:
        grouped.setdefault(log.product_id, []).append(log)
    return grouped


def valuation_summary(
    products: Sequence[Product],
    search: Optional[str] = None,
    sort_key: Optional[str] = "total_import_value",
    descending: bool = True,
) -> ValuationReport:
    """库存价值汇总"""
    rows = []
    for product in products:
        if not matches_search(search, product.name, product.code):
            continue
        import_value = product.stock * product.import_price
        selling_value = product.stock * product.price
        rows.append(ValuationRow(
            id=product.id,
            code=product.code,
            name=product.name,
            category=product.category,
            unit=product.unit,
            stock=product.stock,
            import_price=product.import_price,
            price=product.price,
            total_import_value=import_value,
            total_selling_value=selling_value,
            potential_profit=selling_value - import_value,
        ))

    rows = sort_rows(rows, sort_key, descending, ValuationRow)
    total_import_value = sum((row.total_import_value for row in rows), ZERO)
    total_selling_value = sum((row.total_selling_value for row in rows), ZERO)
    potential_profit = total_selling_value - total_import_value
    return ValuationReport(
        rows=rows,
        total_products=len(rows),
        total_stock=sum(row.stock for row in rows),
        total_import_value=total_import_value,
        total_selling_value=total_selling_value,
        potential_profit=potential_profit,
        profit_margin=percent(potential_profit, total_import_value),
    )


def period_movement(
    products: Sequence[Product],
    logs: Iterable[InventoryLog],
    start_date: date,
    end_date: date,
    search: Optional[str] = None,
) -> MovementReport:
    """进销存明细

    入库金额按流水记录的实际进价计算；出库金额、期初和期末金额按商品当前成本价计算。
    期末库存 = 当前库存撤销区间结束之后的流水，期初库存 = 期末 - 本期入库 + 本期出库。
    """
    _check_range(start_date, end_date)
    start, end = day_range(start_date, end_date)
    grouped = _logs_by_product(logs)

    rows = []
    totals = MovementTotals()
    for product in products:
        if not matches_search(search, product.name, product.code):
            continue
        product_logs = grouped.get(product.id, [])
        in_period = [log for log in product_logs if start <= log.date <= end]

        import_logs = [log for log in in_period if log.type == MovementType.IMPORT]
        import_qty = sum(log.quantity for log in import_logs)
        import_value = sum((log.quantity * log.price for log in import_logs), ZERO)

        export_qty = sum(log.quantity for log in in_period if log.type == MovementType.EXPORT)
        export_value = export_qty * product.import_price

        closing_stock = stock_at(product.stock, product_logs, end)
        opening_stock = closing_stock - import_qty + export_qty

        row = MovementRow(
            id=product.id,
            code=product.code,
            name=product.name,
            unit=product.unit,
            opening_stock=opening_stock,
            opening_value=opening_stock * product.import_price,
            import_qty=import_qty,
            import_value=import_value,
            export_qty=export_qty,
            export_value=export_value,
            closing_stock=closing_stock,
            closing_value=closing_stock * product.import_price,
        )
        rows.append(row)
        for field in MovementTotals.model_fields:
            setattr(totals, field, getattr(totals, field) + getattr(row, field))

    return MovementReport(start_date=start_date, end_date=end_date, rows=rows, totals=totals)


def sales_profit(
    products: Sequence[Product],
    logs: Iterable[InventoryLog],
    orders: Iterable[Order],
    start_date: date,
    end_date: date,
    search: Optional[str] = None,
    sort_key: Optional[str] = "revenue",
    descending: bool = True,
) -> SalesProfitReport:
    """销售利润

    收入来自两部分，互不重复：
    1. 区间内已送达的订单明细
    2. 区间内的出库流水，单据号等于第1部分某个订单号的除外
    销售成本统一按商品当前成本价计算。
    """
    _check_range(start_date, end_date)
    start, end = day_range(start_date, end_date)
    product_map = {product.id: product for product in products}
    sales: Dict[str, Dict[str, Decimal]] = {}

    def add_sale(product_id: str, quantity: int, unit_price: Decimal) -> None:
        product = product_map.get(product_id)
        cost_basis = product.import_price if product else ZERO
        stats = sales.setdefault(product_id, {"qty": 0, "revenue": ZERO, "cost": ZERO})
        stats["qty"] += quantity
        stats["revenue"] += unit_price * quantity
        stats["cost"] += cost_basis * quantity

    delivered = [
        order for order in orders
        if order.status == OrderStatus.DELIVERED and start <= order.date <= end
    ]
    counted_order_ids = {order.id for order in delivered}
    for order in delivered:
        for item in order.items:
            add_sale(item.product_id, item.quantity, item.price)

    for log in logs:
        if log.type != MovementType.EXPORT or not (start <= log.date <= end):
            continue
        # 按单据号精确匹配订单号，已计入订单的出库不重复统计
        if log.reference_doc in counted_order_ids:
            continue
        add_sale(log.product_id, log.quantity, log.price or ZERO)

    rows = []
    for product_id, stats in sales.items():
        product = product_map.get(product_id)
        name = product.name if product else DELETED_PRODUCT_NAME
        code = (product.code or PLACEHOLDER_CODE) if product else PLACEHOLDER_CODE
        if not matches_search(search, name, code):
            continue
        profit = stats["revenue"] - stats["cost"]
        rows.append(SalesProfitRow(
            id=product_id,
            code=code,
            name=name,
            qty_sold=stats["qty"],
            revenue=stats["revenue"],
            cogs=stats["cost"],
            profit=profit,
            margin=percent(profit, stats["revenue"]),
        ))

    rows = sort_rows(rows, sort_key, descending, SalesProfitRow)
    totals = SalesProfitTotals(
        qty_sold=sum(row.qty_sold for row in rows),
        revenue=sum((row.revenue for row in rows), ZERO),
        cogs=sum((row.cogs for row in rows), ZERO),
        profit=sum((row.profit for row in rows), ZERO),
    )
    return SalesProfitReport(start_date=start_date, end_date=end_date, rows=rows, totals=totals)


def supplier_import_history(
    logs: Iterable[InventoryLog],
    supplier_name: str,
    search: Optional[str] = None,
) -> List[InventoryLog]:
    """供货商进货历史：入库流水中供货商名称完全一致的记录，按日期倒序"""
    term = (search or "").lower()
    history = [
        log for log in logs
        if log.type == MovementType.IMPORT
        and log.supplier == supplier_name
        and (
            term in log.product_name.lower()
            or (log.reference_doc is not None and term in log.reference_doc.lower())
        )
    ]
    return sorted(history, key=lambda log: log.date, reverse=True)


def _order_cost(order: Order, product_map: Dict[str, Product]) -> Decimal:
    cost = ZERO
    for item in order.items:
        product = product_map.get(item.product_id)
        cost += (product.import_price if product else ZERO) * item.quantity
    return cost


def _growth(current: Decimal, previous: Decimal) -> Decimal:
    if previous == 0:
        return Decimal("100")
    return percent(Decimal(current) - Decimal(previous), previous)


def dashboard_summary(
    orders: Sequence[Order],
    products: Sequence[Product],
    today: Optional[datetime] = None,
) -> DashboardReport:
    """首页概览：累计销售额和利润、近6个月走势、库存概况"""
    today = today or now_local()
    product_map = {product.id: product for product in products}
    valid_orders = [order for order in orders if order.status != OrderStatus.CANCELLED]

    total_revenue = sum((order.total_amount for order in valid_orders), ZERO)
    total_profit = sum(
        (order.total_amount - _order_cost(order, product_map) for order in valid_orders), ZERO
    )

    monthly = []
    for offset in range(5, -1, -1):
        month_index = today.year * 12 + today.month - 1 - offset
        year, month = divmod(month_index, 12)
        month += 1
        month_orders = [
            order for order in valid_orders
            if order.date.year == year and order.date.month == month
        ]
        monthly.append(MonthlyPoint(
            year=year,
            month=month,
            label=f"{month}月",
            revenue=sum((order.total_amount for order in month_orders), ZERO),
            profit=sum(
                (order.total_amount - _order_cost(order, product_map) for order in month_orders),
                ZERO,
            ),
            orders=len(month_orders),
        ))

    current, previous = monthly[-1], monthly[-2]
    return DashboardReport(
        total_revenue=total_revenue,
        total_profit=total_profit,
        total_orders=len(orders),
        monthly=monthly,
        growth=GrowthStats(
            revenue=_growth(current.revenue, previous.revenue),
            profit=_growth(current.profit, previous.profit),
            orders=_growth(Decimal(current.orders), Decimal(previous.orders)),
        ),
        total_stock=sum(product.stock for product in products),
        total_inventory_value=sum(
            (product.stock * product.import_price for product in products), ZERO
        ),
        unique_customers=len({order.customer_id for order in orders}),
    )
