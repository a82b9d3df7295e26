"""
检查库存流水是否连续
按交易时间顺序回放每个商品的流水：
每条流水的变动前库存应等于上一条的变动后库存，最后一条的变动后库存应等于商品当前库存。
"""
from typing import Dict, List, Sequence

from shopledger.db.database import SessionLocal
from shopledger.schemas.inventory import InventoryLog
from shopledger.schemas.product import Product
from shopledger.services.gateway import StoreGateway


def find_ledger_gaps(products: Sequence[Product], logs: Sequence[InventoryLog]) -> List[str]:
    """返回发现的问题描述，没有问题时为空列表"""
    grouped: Dict[str, List[InventoryLog]] = {}
    for log in logs:
        grouped.setdefault(log.product_id, []).append(log)

    problems = []
    for product in products:
        history = sorted(grouped.get(product.id, []), key=lambda log: (log.date, log.created_at or log.date))
        for previous, current in zip(history, history[1:]):
            if current.old_stock != previous.new_stock:
                problems.append(
                    f"{product.name}: 流水 {current.id} 变动前库存 {current.old_stock}，"
                    f"上一条流水 {previous.id} 变动后库存 {previous.new_stock}"
                )
        if history and history[-1].new_stock != product.stock:
            problems.append(
                f"{product.name}: 当前库存 {product.stock}，最后一条流水变动后库存 {history[-1].new_stock}"
            )
    return problems


def check_stock_ledger():
    """检查数据库中的库存流水"""
    if SessionLocal is None:
        print("未配置数据库（DATABASE_URL）")
        return

    gateway = StoreGateway(SessionLocal)
    products = gateway.get_products()
    logs = gateway.get_inventory_logs()
    print(f"商品 {len(products)} 个，流水 {len(logs)} 条")

    problems = find_ledger_gaps(products, logs)
    if not problems:
        print("库存流水连续，没有发现问题")
        return

    print(f"发现 {len(problems)} 个问题：")
    for problem in problems:
        print(f"  - {problem}")


if __name__ == "__main__":
    check_stock_ledger()
