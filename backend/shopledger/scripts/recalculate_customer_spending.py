"""
重新计算客户累计消费
以未取消订单的实付金额为准，修复历史数据或手工改库后的偏差
"""
from shopledger.db.database import SessionLocal
from shopledger.services.gateway import StoreGateway


def recalculate_customer_spending():
    """重新计算并打印每个客户的累计消费"""
    if SessionLocal is None:
        print("未配置数据库（DATABASE_URL）")
        return

    customers = StoreGateway(SessionLocal).recalculate_customer_spending()
    for customer in customers:
        print(f"{customer.name}: {customer.total_spending}")
    print(f"已更新 {len(customers)} 个客户")


if __name__ == "__main__":
    recalculate_customer_spending()
