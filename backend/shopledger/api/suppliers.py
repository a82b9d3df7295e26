"""
供货商管理API
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional
from shopledger.api.deps import get_console, paginate
from shopledger.schemas.supplier import (
    DebtPayment, Supplier, SupplierCreate, SupplierHistoryResponse, SupplierUpdate
)
from shopledger.services.console import Console

router = APIRouter(prefix="/api/suppliers", tags=["供货商管理"])


@router.get("", response_model=List[Supplier])
def get_suppliers(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    has_debt: Optional[bool] = None,
    console: Console = Depends(get_console)
):
    """获取供货商列表"""
    suppliers = console.snapshot("suppliers")

    if search:
        term = search.lower()
        suppliers = [
            s for s in suppliers
            if term in s.name.lower() or term in s.phone or term in s.code.lower()
        ]

    if has_debt is not None:
        suppliers = [s for s in suppliers if (s.debt > 0) == has_debt]

    return paginate(suppliers, skip, limit)


@router.get("/{supplier_id}", response_model=Supplier)
def get_supplier(supplier_id: str, console: Console = Depends(get_console)):
    """获取供货商详情"""
    return console.find("suppliers", supplier_id)


@router.get("/{supplier_id}/history", response_model=SupplierHistoryResponse)
def get_supplier_history(
    supplier_id: str,
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """获取供货商的进货历史（按供货商名称匹配入库流水）"""
    return console.supplier_history(supplier_id, search)


@router.post("", response_model=Supplier)
def create_supplier(supplier: SupplierCreate, console: Console = Depends(get_console)):
    """创建供货商"""
    if supplier.id and any(s.id == supplier.id for s in console.snapshot("suppliers")):
        raise HTTPException(status_code=400, detail="供货商ID已存在")
    data = supplier.model_dump(exclude={"id"})
    return console.save_supplier(Supplier(id=supplier.id or "", **data))


@router.put("/{supplier_id}", response_model=Supplier)
def update_supplier(
    supplier_id: str,
    supplier_update: SupplierUpdate,
    console: Console = Depends(get_console)
):
    """更新供货商"""
    db_supplier = console.find("suppliers", supplier_id)
    update_data = supplier_update.model_dump(exclude_unset=True)
    return console.save_supplier(db_supplier.model_copy(update=update_data))


@router.post("/{supplier_id}/pay-debt", response_model=Supplier)
def pay_debt(
    supplier_id: str,
    payment: DebtPayment,
    console: Console = Depends(get_console)
):
    """偿还供货商欠款"""
    return console.pay_supplier_debt(supplier_id, payment.amount)


@router.delete("/{supplier_id}")
def delete_supplier(supplier_id: str, console: Console = Depends(get_console)):
    """删除供货商（进货流水中的供货商名称保留）"""
    console.delete_supplier(supplier_id)
    return {"message": "供货商已删除"}
