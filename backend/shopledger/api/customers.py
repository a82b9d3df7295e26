"""
客户管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional
from shopledger.api.deps import get_console, paginate
from shopledger.schemas.customer import Customer, CustomerCreate, CustomerRank, CustomerUpdate
from shopledger.services.console import Console
from shopledger.services.pricing import rank_for

router = APIRouter(prefix="/api/customers", tags=["客户管理"])


@router.get("", response_model=List[Customer])
def get_customers(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """获取客户列表"""
    customers = console.snapshot("customers")

    if search:
        term = search.lower()
        customers = [
            c for c in customers
            if term in c.name.lower() or term in c.phone or term in c.code.lower()
        ]

    return paginate(customers, skip, limit)


@router.post("/recalculate-spending", response_model=List[Customer])
def recalculate_spending(console: Console = Depends(get_console)):
    """按未取消订单重新计算所有客户的累计消费"""
    return console.recalculate_spending()


@router.get("/{customer_id}", response_model=Customer)
def get_customer(customer_id: str, console: Console = Depends(get_console)):
    """获取客户详情"""
    return console.find("customers", customer_id)


@router.get("/{customer_id}/rank", response_model=Optional[CustomerRank])
def get_customer_rank(customer_id: str, console: Console = Depends(get_console)):
    """获取客户当前的会员等级"""
    customer = console.find("customers", customer_id)
    return rank_for(customer.total_spending, console.snapshot("ranks"))


@router.post("", response_model=Customer)
def create_customer(customer: CustomerCreate, console: Console = Depends(get_console)):
    """创建客户"""
    if customer.id and any(c.id == customer.id for c in console.snapshot("customers")):
        raise HTTPException(status_code=400, detail="客户ID已存在")
    data = customer.model_dump(exclude={"id"})
    return console.save_customer(Customer(id=customer.id or "", **data))


@router.put("/{customer_id}", response_model=Customer)
def update_customer(
    customer_id: str,
    customer_update: CustomerUpdate,
    console: Console = Depends(get_console)
):
    """更新客户"""
    db_customer = console.find("customers", customer_id)
    update_data = customer_update.model_dump(exclude_unset=True)
    return console.save_customer(db_customer.model_copy(update=update_data))


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, console: Console = Depends(get_console)):
    """删除客户（历史订单保留客户名称）"""
    console.delete_customer(customer_id)
    return {"message": "客户已删除"}
