"""
库存流水引擎

根据出入库明细计算新的商品状态和对应的流水记录，本身不读写数据库。
加权平均成本只在入库时重新计算：
    新成本价 = round((原库存*原成本价 + 入库数量*进货单价) / 新库存)
出库只减少库存（最低为0），成本价和销售价保持不变。
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from shopledger.core.errors import InsufficientStockError, ValidationError
from shopledger.core.timeutil import now_local
from shopledger.schemas.inventory import InventoryLog, MovementItem, MovementType
from shopledger.schemas.product import Product


def round_money(value: Decimal) -> Decimal:
    """四舍五入到整数金额"""
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def new_movement_id() -> str:
    """生成流水ID，持久化时用于防止重复写入"""
    return f"LOG-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class StockChange:
    """单个商品一次变动后的结果"""
    new_stock: int
    new_import_price: Decimal
    new_price: Decimal


@dataclass(frozen=True)
class Movement:
    """一行明细的变动：变动前、变动后和流水"""
    item: MovementItem
    before: Product
    after: Product
    log: InventoryLog


@dataclass(frozen=True)
class MovementResult:
    """一批出入库的计算结果"""
    products: List[Product]
    logs: List[InventoryLog]
    movements: List[Movement]

    @property
    def new_logs(self) -> List[InventoryLog]:
        return [movement.log for movement in self.movements]

    def snapshots_before(self) -> Dict[str, Product]:
        """每个商品在本批变动之前的状态"""
        snapshots: Dict[str, Product] = {}
        for movement in self.movements:
            snapshots.setdefault(movement.before.id, movement.before)
        return snapshots


def compute_movement(
    product: Product,
    movement_type: MovementType,
    quantity: int,
    price: Decimal,
    new_selling_price: Optional[Decimal] = None,
) -> StockChange:
    """计算单个商品一次出入库后的库存、成本价和销售价"""
    price = Decimal(price or 0)
    import_price = product.import_price
    selling_price = product.price

    if movement_type == MovementType.IMPORT:
        new_stock = product.stock + quantity
        if price > 0:
            if new_stock > 0:
                current_value = product.stock * product.import_price
                import_value = quantity * price
                import_price = round_money((current_value + import_value) / new_stock)
            else:
                import_price = price
        if new_selling_price is not None:
            selling_price = new_selling_price
    else:
        new_stock = max(0, product.stock - quantity)

    return StockChange(new_stock=new_stock, new_import_price=import_price, new_price=selling_price)


def check_export_stock(products: Dict[str, Product], items: Sequence[MovementItem]) -> None:
    """出库前检查库存，任何一个商品不足则整批拒绝

    同一商品出现在多行时按合计数量检查。
    """
    requested: Dict[str, int] = {}
    for item in items:
        requested[item.product.id] = requested.get(item.product.id, 0) + item.quantity

    shortages = []
    for product_id, quantity in requested.items():
        product = products[product_id]
        if quantity > product.stock:
            shortages.append((product.name, quantity, product.stock))
    if shortages:
        raise InsufficientStockError(shortages)


def apply_movement(
    products: Sequence[Product],
    items: Sequence[MovementItem],
    movement_type: MovementType,
    date: Optional[datetime] = None,
    partner: str = "",
    reference_doc: str = "",
    note: str = "",
    existing_logs: Iterable[InventoryLog] = (),
) -> MovementResult:
    """对当前商品列表应用一批出入库明细

    先整体校验再计算，校验失败时不产生任何结果。返回新的商品列表（顺序不变）、
    新流水在前的流水列表，以及每行明细的变动记录。
    """
    if not items:
        raise ValidationError("出入库明细不能为空")

    current = {product.id: product for product in products}
    missing = [item.product.name for item in items if item.product.id not in current]
    if missing:
        raise ValidationError(f"商品不存在：{'、'.join(missing)}")

    if movement_type == MovementType.EXPORT:
        check_export_stock(current, items)

    created_at = now_local()
    transaction_date = date or created_at
    movements: List[Movement] = []

    for item in items:
        # 同一商品多行时，后一行基于前一行的结果计算
        before = current[item.product.id]
        change = compute_movement(
            before, movement_type, item.quantity, item.price, item.new_selling_price
        )
        after = before.model_copy(update={
            "stock": change.new_stock,
            "import_price": change.new_import_price,
            "price": change.new_price,
        })
        log = InventoryLog(
            id=new_movement_id(),
            product_id=before.id,
            product_name=before.name,
            type=movement_type,
            quantity=item.quantity,
            old_stock=before.stock,
            new_stock=change.new_stock,
            price=item.price,
            supplier=partner or None,
            reference_doc=reference_doc or None,
            note=note or None,
            date=transaction_date,
            created_at=created_at,
        )
        current[before.id] = after
        movements.append(Movement(item=item, before=before, after=after, log=log))

    updated_products = [current[product.id] for product in products]
    new_logs = [movement.log for movement in movements]
    return MovementResult(
        products=updated_products,
        logs=new_logs + list(existing_logs),
        movements=movements,
    )


def stock_at(current_stock: int, logs: Iterable[InventoryLog], at: datetime) -> int:
    """倒推某一时刻的库存

    从当前库存出发，撤销该时刻之后的所有流水：入库减回，出库加回。
    """
    stock = current_stock
    for log in logs:
        if log.date > at:
            if log.type == MovementType.IMPORT:
                stock -= log.quantity
            elif log.type == MovementType.EXPORT:
                stock += log.quantity
    return stock
