"""
应用状态协调器

Console 持有内存中的全部业务数据（AppState），所有修改都经过这里：
1. 先校验，校验失败不做任何修改
2. 把修改（Change）应用到本地状态
3. 写入数据库；失败时按流程决定是否执行补偿修改，并抛出 ConsoleError

新增、修改、删除失败都会回滚本地状态。
出入库是逐项写入的，某一项失败时不回滚：已写入的项保留，其余只存在于本地状态，
错误信息里会带上已保存的数量。
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from shopledger.core.errors import (
    ConsoleError, InvalidPaymentError, NotFoundError, PermissionDeniedError,
    StoreError, ValidationError,
)
from shopledger.core.security import verify_password
from shopledger.core.timeutil import now_local
from shopledger.schemas.customer import Customer, CustomerRank
from shopledger.schemas.inventory import (
    InventoryLog, MovementItem, MovementResponse, MovementType,
)
from shopledger.schemas.order import (
    GUEST_CUSTOMER_ID, GUEST_CUSTOMER_NAME, Order, OrderCreate, OrderItem, OrderStatus,
)
from shopledger.schemas.product import Product
from shopledger.schemas.promotion import Promotion
from shopledger.schemas.report import (
    DashboardReport, MovementReport, SalesProfitReport, ValuationReport,
)
from shopledger.schemas.supplier import Supplier, SupplierHistoryResponse
from shopledger.schemas.user import User, UserRole
from shopledger.services import reports
from shopledger.services.gateway import StoreGateway
from shopledger.services.ledger import MovementResult, apply_movement
from shopledger.services.pricing import (
    calculate_discount, is_promotion_active, order_totals, spending_delta,
)

logger = logging.getLogger(__name__)

COLLECTION_LABELS = {
    "orders": "订单",
    "products": "商品",
    "customers": "客户",
    "suppliers": "供货商",
    "logs": "出入库流水",
    "users": "用户",
    "promotions": "促销",
    "ranks": "会员等级",
}


@dataclass
class AppState:
    """内存中的业务数据"""
    orders: List[Order] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    customers: List[Customer] = field(default_factory=list)
    suppliers: List[Supplier] = field(default_factory=list)
    logs: List[InventoryLog] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    promotions: List[Promotion] = field(default_factory=list)
    ranks: List[CustomerRank] = field(default_factory=list)


@dataclass(frozen=True)
class Change:
    """对某个集合中一条记录的修改

    before 为 None 表示新增（插入到最前面），after 为 None 表示删除。
    正向修改把 before 换成 after，补偿修改把 after 换回 before。
    """
    collection: str
    before: Optional[BaseModel]
    after: Optional[BaseModel]

    def apply(self, state: AppState) -> None:
        _swap(getattr(state, self.collection), self.before, self.after)

    def revert(self, state: AppState) -> None:
        _swap(getattr(state, self.collection), self.after, self.before)


@dataclass(frozen=True)
class ListChange:
    """整体替换一个集合"""
    collection: str
    before: List[BaseModel]
    after: List[BaseModel]

    def apply(self, state: AppState) -> None:
        setattr(state, self.collection, list(self.after))

    def revert(self, state: AppState) -> None:
        setattr(state, self.collection, list(self.before))


def _swap(items: list, old: Optional[BaseModel], new: Optional[BaseModel]) -> None:
    if old is None:
        items.insert(0, new)
        return
    for index, item in enumerate(items):
        if item.id == old.id:
            if new is None:
                del items[index]
            else:
                items[index] = new
            return
    if new is not None:
        items.insert(0, new)


def temp_id() -> str:
    """本地临时ID，保存后由数据库返回的ID替换"""
    return f"TEMP-{uuid.uuid4().hex[:12]}"


def generate_export_doc(existing: Sequence[str]) -> str:
    """出库单号：EXP- 加6位数字"""
    doc = f"EXP-{str(int(time.time() * 1000))[-6:]}"
    while doc in existing:
        doc = f"EXP-{uuid.uuid4().int % 1000000:06d}"
    return doc


def _require_admin(actor: Optional[User], action: str) -> None:
    if actor is None or actor.role != UserRole.ADMIN:
        raise PermissionDeniedError(f"只有管理员可以{action}")


class Console:
    """业务操作的唯一入口"""

    def __init__(self, gateway: StoreGateway, state: Optional[AppState] = None):
        self.gateway = gateway
        self.state = state or AppState()
        self._lock = threading.RLock()

    # --- 通用 ---

    def load(self) -> AppState:
        """从数据库读取全部数据"""
        with self._lock:
            self.state = AppState(
                orders=self.gateway.get_orders(),
                products=self.gateway.get_products(),
                customers=self.gateway.get_customers(),
                suppliers=self.gateway.get_suppliers(),
                logs=self.gateway.get_inventory_logs(),
                users=self.gateway.get_users(),
                promotions=self.gateway.get_promotions(),
                ranks=self.gateway.get_customer_ranks(),
            )
            logger.info(
                f"已加载数据: 商品 {len(self.state.products)}，订单 {len(self.state.orders)}，"
                f"流水 {len(self.state.logs)}"
            )
            return self.state

    def snapshot(self, collection: str) -> list:
        with self._lock:
            return list(getattr(self.state, collection))

    def find(self, collection: str, entity_id: str):
        """按ID查找，不存在时抛出 NotFoundError"""
        with self._lock:
            for item in getattr(self.state, collection):
                if item.id == entity_id:
                    return item
        raise NotFoundError(f"{COLLECTION_LABELS[collection]}不存在")

    def _get(self, collection: str, entity_id: Optional[str]):
        if not entity_id:
            return None
        for item in getattr(self.state, collection):
            if item.id == entity_id:
                return item
        return None

    def user_by_email(self, email: Optional[str]) -> Optional[User]:
        if not email:
            return None
        with self._lock:
            for user in self.state.users:
                if user.email.lower() == email.strip().lower():
                    return user
        return None

    def _commit(self, changes: Sequence, context: str, write):
        """应用修改并写入数据库，写入失败时执行补偿修改"""
        for change in changes:
            change.apply(self.state)
        try:
            return write()
        except StoreError as exc:
            for change in reversed(changes):
                change.revert(self.state)
            logger.error(f"保存{context}失败，已回滚本地修改: {exc}")
            raise ConsoleError(context, exc) from exc

    def _save(self, collection: str, entity: BaseModel, context: str, create, update):
        """新增或修改一条记录，返回保存后的记录"""
        existing = self._get(collection, entity.id)
        if existing is None:
            if not entity.id:
                entity = entity.model_copy(update={"id": temp_id()})
            saved = self._commit([Change(collection, None, entity)], context, lambda: create(entity))
            if saved.id != entity.id:
                Change(collection, entity, saved).apply(self.state)
            return saved
        return self._commit([Change(collection, existing, entity)], context, lambda: update(entity))

    def _remove(self, collection: str, entity_id: str, context: str, delete) -> None:
        existing = self.find(collection, entity_id)
        self._commit([Change(collection, existing, None)], context, lambda: delete(entity_id))

    # --- 商品 ---

    def save_product(self, product: Product) -> Product:
        with self._lock:
            return self._save(
                "products", product, "商品", self.gateway.create_product, self.gateway.update_product
            )

    def delete_product(self, product_id: str, actor: Optional[User]) -> None:
        with self._lock:
            _require_admin(actor, "删除商品")
            self._remove("products", product_id, "删除商品", self.gateway.delete_product)

    # --- 客户 ---

    def save_customer(self, customer: Customer) -> Customer:
        with self._lock:
            existing = self._get("customers", customer.id)
            if existing is not None:
                # 累计消费只由订单维护
                customer = customer.model_copy(update={"total_spending": existing.total_spending})
            return self._save(
                "customers", customer, "客户", self.gateway.create_customer, self.gateway.update_customer
            )

    def delete_customer(self, customer_id: str) -> None:
        with self._lock:
            self._remove("customers", customer_id, "删除客户", self.gateway.delete_customer)

    def save_ranks(self, ranks: List[CustomerRank]) -> List[CustomerRank]:
        with self._lock:
            ranks = [
                rank if rank.id else rank.model_copy(update={"id": temp_id()}) for rank in ranks
            ]
            change = ListChange("ranks", list(self.state.ranks), ranks)
            return self._commit([change], "会员等级", lambda: self.gateway.save_customer_ranks(ranks))

    def recalculate_spending(self) -> List[Customer]:
        """按未取消订单重新计算所有客户的累计消费"""
        with self._lock:
            if self.gateway.configured:
                try:
                    customers = self.gateway.recalculate_customer_spending()
                except StoreError as exc:
                    raise ConsoleError("累计消费", exc) from exc
            else:
                totals: Dict[str, Decimal] = {}
                for order in self.state.orders:
                    delta = spending_delta(None, Decimal("0"), order.status, order.payable_amount)
                    totals[order.customer_id] = totals.get(order.customer_id, Decimal("0")) + delta
                customers = [
                    customer.model_copy(update={"total_spending": totals.get(customer.id, Decimal("0"))})
                    for customer in self.state.customers
                ]
            self.state.customers = customers
            return list(customers)

    def _apply_spending(self, old: Optional[Order], new: Optional[Order]) -> None:
        """本地同步客户累计消费，与数据库中的调整规则一致"""
        def adjust(customer_id: str, delta: Decimal) -> None:
            customer = self._get("customers", customer_id)
            if customer is None or customer_id == GUEST_CUSTOMER_ID or not delta:
                return
            updated = customer.model_copy(update={"total_spending": customer.total_spending + delta})
            Change("customers", customer, updated).apply(self.state)

        zero = Decimal("0")
        if old and new and old.customer_id != new.customer_id:
            adjust(old.customer_id, spending_delta(old.status, old.payable_amount, None, zero))
            adjust(new.customer_id, spending_delta(None, zero, new.status, new.payable_amount))
            return
        customer_id = (new or old).customer_id
        adjust(customer_id, spending_delta(
            old.status if old else None, old.payable_amount if old else zero,
            new.status if new else None, new.payable_amount if new else zero,
        ))

    # --- 供货商 ---

    def save_supplier(self, supplier: Supplier) -> Supplier:
        with self._lock:
            existing = self._get("suppliers", supplier.id)
            if existing is not None:
                # 欠款和累计进货只通过进货和付款调整
                supplier = supplier.model_copy(update={
                    "debt": existing.debt,
                    "total_purchased": existing.total_purchased,
                })
            return self._save(
                "suppliers", supplier, "供货商", self.gateway.create_supplier, self.gateway.update_supplier
            )

    def delete_supplier(self, supplier_id: str) -> None:
        with self._lock:
            self._remove("suppliers", supplier_id, "删除供货商", self.gateway.delete_supplier)

    def _change_debt(self, supplier: Supplier, debt_change: Decimal, purchase_change: Decimal) -> Supplier:
        stored = self.gateway.update_supplier_debt(supplier.id, debt_change, purchase_change)
        updated = stored or supplier.model_copy(update={
            "debt": supplier.debt + debt_change,
            "total_purchased": supplier.total_purchased + purchase_change,
        })
        Change("suppliers", supplier, updated).apply(self.state)
        return updated

    def pay_supplier_debt(self, supplier_id: str, amount: Decimal) -> Supplier:
        """偿还供货商欠款，金额必须大于0且不超过当前欠款"""
        with self._lock:
            supplier = self.find("suppliers", supplier_id)
            if amount <= 0:
                raise InvalidPaymentError("付款金额必须大于0")
            if amount > supplier.debt:
                raise InvalidPaymentError(f"付款金额不能超过当前欠款 {supplier.debt}")
            try:
                updated = self._change_debt(supplier, -amount, Decimal("0"))
            except StoreError as exc:
                raise ConsoleError("供货商付款", exc) from exc
            logger.info(f"供货商 {supplier.name} 付款 {amount}，剩余欠款 {updated.debt}")
            return updated

    def supplier_history(self, supplier_id: str, search: Optional[str] = None) -> SupplierHistoryResponse:
        with self._lock:
            supplier = self.find("suppliers", supplier_id)
            logs = reports.supplier_import_history(self.state.logs, supplier.name, search)
        return SupplierHistoryResponse(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            logs=logs,
            total_imports=len(logs),
            total_quantity=sum(log.quantity for log in logs),
            total_value=sum((log.quantity * log.price for log in logs), Decimal("0")),
        )

    # --- 用户 ---

    def save_user(self, user: User, password: Optional[str] = None, actor: Optional[User] = None) -> User:
        with self._lock:
            _require_admin(actor, "管理用户")
            for other in self.state.users:
                if other.id != user.id and other.email.lower() == user.email.lower():
                    raise ValidationError(f"邮箱已被使用：{user.email}")
            return self._save(
                "users", user, "用户",
                lambda entity: self.gateway.create_user(entity, password),
                lambda entity: self.gateway.update_user(entity, password),
            )

    def delete_user(self, user_id: str, actor: Optional[User] = None) -> None:
        with self._lock:
            _require_admin(actor, "删除用户")
            if actor.id == user_id:
                raise ValidationError("不能删除当前登录的用户")
            self._remove("users", user_id, "删除用户", self.gateway.delete_user)

    def change_password(self, user_id: str, new_password: str, current_password: Optional[str] = None) -> None:
        with self._lock:
            self.find("users", user_id)
            try:
                if current_password is not None:
                    stored = self.gateway.get_user_password_hash(user_id)
                    if stored and not verify_password(current_password, stored):
                        raise ValidationError("当前密码不正确")
                self.gateway.change_password(user_id, new_password)
            except StoreError as exc:
                raise ConsoleError("密码", exc) from exc

    # --- 促销 ---

    def save_promotion(self, promotion: Promotion) -> Promotion:
        with self._lock:
            return self._save(
                "promotions", promotion, "促销",
                self.gateway.create_promotion, self.gateway.update_promotion,
            )

    def delete_promotion(self, promotion_id: str) -> None:
        with self._lock:
            self._remove("promotions", promotion_id, "删除促销", self.gateway.delete_promotion)

    # --- 出入库 ---

    def _persist_movements(self, result: MovementResult, movement_type: MovementType,
                           partner: str, reference_doc: str, note: str, context: str) -> int:
        """逐项写入出入库，失败时不回滚，返回已写入的数量"""
        persisted = 0
        for movement in result.movements:
            try:
                self.gateway.update_product_stock(
                    movement.before,
                    movement_type,
                    movement.item.quantity,
                    movement.item.price,
                    partner,
                    reference_doc,
                    note,
                    movement.log.date,
                    movement.item.new_selling_price,
                    movement_id=movement.log.id,
                )
            except StoreError as exc:
                logger.error(
                    f"出入库写入失败，已保存 {persisted}/{len(result.movements)} 项: {exc}"
                )
                raise ConsoleError(context, exc, persisted=persisted) from exc
            persisted += 1
        return persisted

    def _apply_movement(self, items: Sequence[MovementItem], movement_type: MovementType,
                        date: Optional[datetime], partner: str, reference_doc: str,
                        note: str, context: str) -> MovementResult:
        """计算并应用一批出入库：校验、更新本地状态、逐项写入"""
        result = apply_movement(
            self.state.products, items, movement_type, date, partner, reference_doc, note,
            self.state.logs,
        )
        after = {product.id: product for product in result.products}
        changes = [
            Change("products", before, after[product_id])
            for product_id, before in result.snapshots_before().items()
        ]
        # 倒序插入，使本批第一条流水排在最前面
        changes.extend(Change("logs", None, log) for log in reversed(result.new_logs))
        for change in changes:
            change.apply(self.state)
        self._persist_movements(result, movement_type, partner, reference_doc, note, context)
        return result

    def inventory_update(
        self,
        items: Sequence[MovementItem],
        movement_type: MovementType,
        partner: str = "",
        reference_doc: str = "",
        note: str = "",
        date: Optional[datetime] = None,
        paid_amount: Decimal = Decimal("0"),
        discount_amount: Decimal = Decimal("0"),
        promotion_id: Optional[str] = None,
    ) -> MovementResponse:
        """入库或出库

        入库：按供货商名称（完全一致）增加欠款 max(0, 货款-已付) 和累计进货金额。
        出库：自动生成一张已送达的订单，订单号即单据号，客户按名称匹配，找不到时记为散客。
        """
        with self._lock:
            doc = reference_doc.strip()
            order_ids = [order.id for order in self.state.orders]
            if movement_type == MovementType.EXPORT:
                if doc in order_ids:
                    raise ValidationError(f"单据号已存在：{doc}")
                doc = doc or generate_export_doc(order_ids)

            context = "出入库/订单"
            result = self._apply_movement(items, movement_type, date, partner, doc, note, context)
            persisted = len(result.movements)
            order = None
            try:
                if movement_type == MovementType.IMPORT:
                    self._record_purchase(items, partner, paid_amount)
                else:
                    order = self._record_sale(
                        items, partner, doc, result.new_logs[0].date, discount_amount, promotion_id
                    )
            except StoreError as exc:
                raise ConsoleError(context, exc, persisted=persisted) from exc

            changed = result.snapshots_before()
            return MovementResponse(
                products=[product for product in result.products if product.id in changed],
                logs=result.new_logs,
                reference_doc=doc or None,
                order=order,
            )

    def _record_purchase(self, items: Sequence[MovementItem], partner: str, paid_amount: Decimal) -> None:
        if not partner:
            return
        supplier = next((s for s in self.state.suppliers if s.name == partner), None)
        if supplier is None:
            return
        bill = sum((item.quantity * item.price for item in items), Decimal("0"))
        debt_increase = max(Decimal("0"), bill - paid_amount)
        if debt_increase > 0 or bill > 0:
            self._change_debt(supplier, debt_increase, bill)

    def _record_sale(self, items: Sequence[MovementItem], partner: str, doc: str,
                     date: datetime, discount_amount: Decimal,
                     promotion_id: Optional[str]) -> Order:
        key = partner.strip().lower()
        customer = next(
            (c for c in self.state.customers if key and c.name.strip().lower() == key), None
        )
        order_items = [
            OrderItem(
                product_id=item.product.id,
                product_name=item.product.name,
                quantity=item.quantity,
                price=item.price,
            )
            for item in items
        ]
        total, final = order_totals(order_items, discount_amount)
        order = Order(
            id=doc,
            customer_id=customer.id if customer else GUEST_CUSTOMER_ID,
            customer_name=partner or GUEST_CUSTOMER_NAME,
            items=order_items,
            total_amount=total,
            discount_amount=discount_amount,
            final_amount=final,
            promotion_id=promotion_id,
            status=OrderStatus.DELIVERED,
            date=date,
        )
        created = self.gateway.create_order(order)
        Change("orders", None, created).apply(self.state)
        self._apply_spending(None, created)
        return created

    # --- 订单 ---

    def build_order(self, data: OrderCreate, order_id: Optional[str] = None) -> Order:
        """根据请求生成订单：补全客户和商品名称，按促销计算金额"""
        with self._lock:
            order_id = order_id or data.id
            existing = self._get("orders", order_id)
            customer = self._get("customers", data.customer_id)
            items = []
            for item in data.items:
                if not item.product_name:
                    product = self._get("products", item.product_id)
                    if product is not None:
                        item = item.model_copy(update={"product_name": product.name})
                items.append(item)

            order_date = data.date or (existing.date if existing else now_local())
            promotion = self._get("promotions", data.promotion_id)
            if promotion is not None and not is_promotion_active(promotion, order_date.date()):
                raise ValidationError(f"促销不可用：{promotion.name}")

            total, _ = order_totals(items)
            spending = customer.total_spending if customer else Decimal("0")
            discount = calculate_discount(total, promotion, spending)
            total, final = order_totals(items, discount)
            return Order(
                id=order_id or "",
                customer_id=customer.id if customer else GUEST_CUSTOMER_ID,
                customer_name=customer.name if customer else (data.customer_name or GUEST_CUSTOMER_NAME),
                items=items,
                status=data.status,
                promotion_id=promotion.id if promotion else None,
                total_amount=total,
                discount_amount=discount,
                final_amount=final,
                date=order_date,
            )

    def save_order(self, order: Order) -> Order:
        """新增或修改订单

        已送达的订单修改后仍为已送达时，数量差额转为出入库：
        多卖的部分出库，少卖的部分按当前销售价入库。
        """
        with self._lock:
            existing = self._get("orders", order.id)
            if existing is None:
                saved = self._save("orders", order, "订单", self.gateway.create_order, self.gateway.update_order)
                self._apply_spending(None, saved)
                return saved

            if existing.status == OrderStatus.DELIVERED and order.status == OrderStatus.DELIVERED:
                self._adjust_order_stock(existing, order)
            saved = self._commit(
                [Change("orders", existing, order)], "订单", lambda: self.gateway.update_order(order)
            )
            self._apply_spending(existing, saved)
            return saved

    def _adjust_order_stock(self, old: Order, new: Order) -> None:
        def quantities(order: Order) -> Dict[str, int]:
            totals: Dict[str, int] = {}
            for item in order.items:
                totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
            return totals

        old_qty, new_qty = quantities(old), quantities(new)
        exports, imports = [], []
        for product_id in list(dict.fromkeys([*old_qty, *new_qty])):
            diff = new_qty.get(product_id, 0) - old_qty.get(product_id, 0)
            product = self._get("products", product_id)
            if diff == 0 or product is None:
                continue
            item = MovementItem(product=product, quantity=abs(diff), price=product.price)
            (exports if diff > 0 else imports).append(item)

        partner = f"调整订单 {new.id}"
        note = "修改订单自动调整库存"
        # 先校验出库，库存不足时整单不做修改
        if exports:
            self._apply_movement(exports, MovementType.EXPORT, now_local(), partner, new.id, note, "订单库存调整")
        if imports:
            self._apply_movement(imports, MovementType.IMPORT, now_local(), partner, new.id, note, "订单库存调整")

    def delete_order(self, order_id: str) -> None:
        with self._lock:
            existing = self.find("orders", order_id)
            self._remove("orders", order_id, "删除订单", self.gateway.delete_order)
            self._apply_spending(existing, None)

    # --- 报表 ---

    def valuation(self, search: Optional[str] = None, sort_key: Optional[str] = "total_import_value",
                  descending: bool = True) -> ValuationReport:
        with self._lock:
            products = list(self.state.products)
        return reports.valuation_summary(products, search, sort_key, descending)

    def movement(self, start_date: date, end_date: date, search: Optional[str] = None) -> MovementReport:
        with self._lock:
            products, logs = list(self.state.products), list(self.state.logs)
        return reports.period_movement(products, logs, start_date, end_date, search)

    def sales_profit(self, start_date: date, end_date: date, search: Optional[str] = None,
                     sort_key: Optional[str] = "revenue", descending: bool = True) -> SalesProfitReport:
        with self._lock:
            products, logs, orders = (
                list(self.state.products), list(self.state.logs), list(self.state.orders)
            )
        return reports.sales_profit(products, logs, orders, start_date, end_date, search, sort_key, descending)

    def dashboard(self, today: Optional[datetime] = None) -> DashboardReport:
        with self._lock:
            orders, products = list(self.state.orders), list(self.state.products)
        return reports.dashboard_summary(orders, products, today)
