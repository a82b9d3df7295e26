"""
实体与数据库行之间的转换

读取时为缺失的字段补默认值；CORE_COLUMNS 列出每张表的基础字段，
表结构落后于应用时网关只用这些字段重试一次。
"""
import json
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from shopledger.schemas.customer import Customer, CustomerRank
from shopledger.schemas.inventory import DELETED_PRODUCT_NAME, InventoryLog, MovementType
from shopledger.schemas.order import (
    GUEST_CUSTOMER_ID, GUEST_CUSTOMER_NAME, Order, OrderItem, OrderStatus,
)
from shopledger.schemas.product import Product
from shopledger.schemas.promotion import Promotion
from shopledger.schemas.supplier import Supplier
from shopledger.schemas.user import User, UserRole

CORE_COLUMNS: Dict[str, List[str]] = {
    "products": ["id", "name", "price", "import_price", "stock", "category", "origin", "image_url"],
    "inventory_logs": [
        "id", "product_id", "type", "quantity", "old_stock", "new_stock",
        "price", "supplier", "reference_doc", "note", "created_at",
    ],
    "orders": ["id", "customer_id", "customer_name", "total_amount", "status", "created_at"],
    "order_items": ["id", "order_id", "product_id", "product_name", "quantity", "price"],
    "customers": ["id", "name", "email", "phone", "address"],
    "customer_ranks": ["id", "name", "min_spending", "color"],
    "suppliers": ["id", "name", "email", "phone", "address"],
    "app_users": ["id", "email", "name", "role", "password_hash"],
    "promotions": [
        "id", "code", "name", "type", "value", "min_order_value",
        "start_date", "end_date", "is_active",
    ],
}


def reduce_row(table_name: str, row: Mapping[str, Any]) -> Dict[str, Any]:
    """只保留基础字段"""
    core = CORE_COLUMNS[table_name]
    return {key: value for key, value in row.items() if key in core}


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def _text(value: Any, default: str = "") -> str:
    return value if value else default


# --- 商品 ---

def row_to_product(row: Mapping[str, Any]) -> Product:
    return Product(
        id=str(row["id"]),
        code=_text(row.get("code")),
        name=row["name"],
        model=row.get("model") or None,
        unit=_text(row.get("unit"), "个"),
        category=_text(row.get("category"), "其他"),
        origin=_text(row.get("origin"), "未知"),
        description=row.get("description"),
        image_url=_text(row.get("image_url")),
        catalog_url=row.get("catalog_url"),
        price=_decimal(row.get("price")),
        import_price=_decimal(row.get("import_price")),
        stock=int(row.get("stock") or 0),
        batch_number=row.get("batch_number"),
        expiry_date=row.get("expiry_date"),
        created_at=row.get("created_at"),
    )


def product_to_row(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "code": product.code,
        "name": product.name,
        "model": product.model or None,
        "unit": product.unit or "个",
        "category": product.category,
        "origin": product.origin,
        "description": product.description or None,
        "image_url": product.image_url,
        "catalog_url": product.catalog_url or None,
        "price": product.price,
        "import_price": product.import_price,
        "stock": product.stock,
        "batch_number": product.batch_number or None,
        "expiry_date": product.expiry_date,
    }


# --- 出入库流水 ---

def row_to_log(row: Mapping[str, Any], product_names: Mapping[str, str]) -> InventoryLog:
    product_id = str(row["product_id"])
    return InventoryLog(
        id=str(row["id"]),
        product_id=product_id,
        product_name=product_names.get(product_id, DELETED_PRODUCT_NAME),
        type=MovementType(row["type"]),
        quantity=int(row["quantity"]),
        old_stock=int(row["old_stock"]),
        new_stock=int(row["new_stock"]),
        price=_decimal(row.get("price")),
        supplier=row.get("supplier"),
        reference_doc=row.get("reference_doc"),
        note=row.get("note"),
        # 旧表没有 date 字段时使用创建时间
        date=row.get("date") or row["created_at"],
        created_at=row.get("created_at"),
    )


def log_to_row(log: InventoryLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "product_id": log.product_id,
        "type": log.type.value,
        "quantity": log.quantity,
        "old_stock": log.old_stock,
        "new_stock": log.new_stock,
        "price": log.price,
        "supplier": log.supplier or None,
        "reference_doc": log.reference_doc or None,
        "note": log.note or None,
        "date": log.date,
        "created_at": log.created_at or log.date,
    }


# --- 订单 ---

def row_to_order(row: Mapping[str, Any], item_rows: Iterable[Mapping[str, Any]]) -> Order:
    total_amount = _decimal(row.get("total_amount"))
    final_amount = row.get("final_amount")
    return Order(
        id=str(row["id"]),
        customer_id=_text(row.get("customer_id"), GUEST_CUSTOMER_ID),
        customer_name=_text(row.get("customer_name"), GUEST_CUSTOMER_NAME),
        items=[
            OrderItem(
                product_id=str(item["product_id"]),
                product_name=_text(item.get("product_name")),
                quantity=int(item["quantity"]),
                price=_decimal(item.get("price")),
            )
            for item in item_rows
        ],
        total_amount=total_amount,
        discount_amount=_decimal(row.get("discount_amount")),
        final_amount=_decimal(final_amount) if final_amount is not None else total_amount,
        promotion_id=row.get("promotion_id"),
        status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
        date=row["created_at"],
    )


def order_to_row(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "total_amount": order.total_amount,
        "discount_amount": order.discount_amount or Decimal("0"),
        "final_amount": order.payable_amount,
        "promotion_id": order.promotion_id or None,
        "status": order.status.value,
        "created_at": order.date,
    }


def order_items_to_rows(order: Order) -> List[Dict[str, Any]]:
    return [
        {
            "order_id": order.id,
            "product_id": item.product_id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "price": item.price,
        }
        for item in order.items
    ]


# --- 客户 ---

def row_to_customer(row: Mapping[str, Any]) -> Customer:
    return Customer(
        id=str(row["id"]),
        code=_text(row.get("code")),
        name=row["name"],
        email=_text(row.get("email")),
        phone=_text(row.get("phone")),
        address=_text(row.get("address")),
        total_spending=_decimal(row.get("total_spending")),
        created_at=row.get("created_at"),
    )


def customer_to_row(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "code": customer.code,
        "name": customer.name,
        "email": customer.email or None,
        "phone": customer.phone,
        "address": customer.address or None,
        "total_spending": customer.total_spending,
    }


def row_to_rank(row: Mapping[str, Any]) -> CustomerRank:
    return CustomerRank(
        id=str(row["id"]),
        name=row["name"],
        min_spending=_decimal(row.get("min_spending")),
        color=row.get("color"),
    )


def rank_to_row(rank: CustomerRank) -> Dict[str, Any]:
    return {
        "id": rank.id,
        "name": rank.name,
        "min_spending": rank.min_spending,
        "color": rank.color,
    }


# --- 供货商 ---

def row_to_supplier(row: Mapping[str, Any]) -> Supplier:
    return Supplier(
        id=str(row["id"]),
        code=_text(row.get("code")),
        name=row["name"],
        email=_text(row.get("email")),
        phone=_text(row.get("phone")),
        address=_text(row.get("address")),
        debt=_decimal(row.get("debt")),
        total_purchased=_decimal(row.get("total_purchased")),
        created_at=row.get("created_at"),
    )


def supplier_to_row(supplier: Supplier) -> Dict[str, Any]:
    return {
        "id": supplier.id,
        "code": supplier.code,
        "name": supplier.name,
        "email": supplier.email or None,
        "phone": supplier.phone,
        "address": supplier.address or None,
        "debt": supplier.debt,
        "total_purchased": supplier.total_purchased,
    }


# --- 用户 ---

def _permissions(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return list(json.loads(value))
    return list(value)


def row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=str(row["id"]),
        email=row["email"],
        name=row["name"],
        phone=_text(row.get("phone")),
        role=UserRole(row.get("role") or UserRole.STAFF.value),
        permissions=_permissions(row.get("permissions")),
        created_at=row.get("created_at"),
    )


def user_to_row(user: User, password_hash: Optional[str] = None) -> Dict[str, Any]:
    row = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": user.role.value,
        "permissions": json.dumps(user.permissions or [], ensure_ascii=False),
    }
    if password_hash:
        row["password_hash"] = password_hash
    return row


# --- 促销 ---

def row_to_promotion(row: Mapping[str, Any]) -> Promotion:
    return Promotion(
        id=str(row["id"]),
        code=row["code"],
        name=row["name"],
        type=row["type"],
        value=_decimal(row.get("value")),
        min_order_value=_decimal(row.get("min_order_value")),
        min_customer_spending=_decimal(row.get("min_customer_spending")),
        start_date=row.get("start_date"),
        end_date=row.get("end_date"),
        is_active=bool(row.get("is_active", True)),
        description=row.get("description"),
    )


def promotion_to_row(promotion: Promotion) -> Dict[str, Any]:
    return {
        "id": promotion.id,
        "code": promotion.code,
        "name": promotion.name,
        "type": promotion.type.value,
        "value": promotion.value,
        "min_order_value": promotion.min_order_value,
        "min_customer_spending": promotion.min_customer_spending,
        "start_date": promotion.start_date,
        "end_date": promotion.end_date,
        "is_active": promotion.is_active,
        "description": promotion.description,
    }
