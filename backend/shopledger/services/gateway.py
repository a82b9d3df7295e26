"""
数据存储网关

所有数据库读写都经过这里，使用 SQLAlchemy Core 直接操作模型对应的表。
- 未配置数据库（session_factory 为 None）时：读取返回示例数据，写入原样返回
- 数据库出错时抛出 StoreError
- 表结构落后（缺少字段）时只用基础字段重试一次，仍失败则抛出 SchemaMismatchError
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import column, delete, func, insert, select, table as lightweight_table, update
from sqlalchemy.exc import SQLAlchemyError

from shopledger import models
from shopledger.core.errors import NotFoundError, SchemaMismatchError, StoreError
from shopledger.core.security import get_password_hash
from shopledger.core.timeutil import now_local
from shopledger.db import sample_data
from shopledger.schemas.customer import Customer, CustomerRank
from shopledger.schemas.inventory import InventoryLog, MovementType
from shopledger.schemas.order import GUEST_CUSTOMER_ID, Order, OrderStatus
from shopledger.schemas.product import Product
from shopledger.schemas.promotion import Promotion
from shopledger.schemas.supplier import Supplier
from shopledger.schemas.user import User
from shopledger.services import mapping
from shopledger.services.ledger import compute_movement, new_movement_id
from shopledger.services.pricing import spending_delta

logger = logging.getLogger(__name__)

products_table = models.Product.__table__
logs_table = models.InventoryLog.__table__
orders_table = models.Order.__table__
order_items_table = models.OrderItem.__table__
customers_table = models.Customer.__table__
ranks_table = models.CustomerRank.__table__
suppliers_table = models.Supplier.__table__
users_table = models.User.__table__
promotions_table = models.Promotion.__table__

_MISMATCH_MARKERS = ("no such column", "has no column", "does not exist", "unknown column")


def _error_message(exc: Exception) -> str:
    original = getattr(exc, "orig", None)
    return str(original or exc)


def is_schema_mismatch(exc: Exception) -> bool:
    """是否为缺少字段一类的错误"""
    message = _error_message(exc).lower()
    return "column" in message and any(marker in message for marker in _MISMATCH_MARKERS)


def assign_id(entity_id: Optional[str]) -> str:
    """没有ID或为TEMP开头的临时ID时生成新ID"""
    if not entity_id or entity_id.startswith("TEMP"):
        return uuid.uuid4().hex
    return entity_id


class StoreGateway:
    """数据存储网关"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    @property
    def configured(self) -> bool:
        return self.session_factory is not None

    @contextmanager
    def _session(self):
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _run(self, action: Callable[[Any, bool], Any], what: str):
        """执行一次数据库操作

        action(session, reduced) 中 reduced=True 表示只使用基础字段。
        """
        try:
            with self._session() as session:
                return action(session, False)
        except SQLAlchemyError as exc:
            if not is_schema_mismatch(exc):
                logger.error(f"{what}失败: {_error_message(exc)}")
                raise StoreError(_error_message(exc), exc) from exc
            logger.warning(f"{what}时表结构不一致，改用基础字段重试: {_error_message(exc)}")

        try:
            with self._session() as session:
                return action(session, True)
        except SQLAlchemyError as exc:
            logger.error(f"{what}重试失败: {_error_message(exc)}")
            raise SchemaMismatchError(_error_message(exc), exc) from exc

    @staticmethod
    def _target(table, reduced: bool):
        """reduced=True 时换成只含基础字段的轻量表，其余字段的默认值不会出现在语句里"""
        if not reduced:
            return table
        core = mapping.CORE_COLUMNS[table.name]
        return lightweight_table(table.name, *[column(name, table.c[name].type) for name in core])

    @classmethod
    def _select(cls, table, reduced: bool, order_by: Sequence[str] = ()):
        table = cls._target(table, reduced)
        if reduced:
            order_by = [name for name in order_by if name.lstrip("-") in mapping.CORE_COLUMNS[table.name]]
        stmt = select(table)
        for name in order_by:
            if name.startswith("-"):
                stmt = stmt.order_by(table.c[name[1:]].desc())
            else:
                stmt = stmt.order_by(table.c[name])
        return stmt

    @staticmethod
    def _row(table, row: Dict[str, Any], reduced: bool) -> Dict[str, Any]:
        return mapping.reduce_row(table.name, row) if reduced else row

    def _fetch_all(self, table, converter, order_by: Sequence[str] = (), what: str = ""):
        def action(session, reduced):
            rows = session.execute(self._select(table, reduced, order_by)).mappings().all()
            return [converter(row) for row in rows]

        return self._run(action, what or f"读取{table.name}")

    def _insert(self, table, row: Dict[str, Any], what: str) -> None:
        def action(session, reduced):
            session.execute(insert(self._target(table, reduced)).values(**self._row(table, row, reduced)))

        self._run(action, what)

    def _update(self, table, entity_id: str, row: Dict[str, Any], what: str, missing: str) -> None:
        def action(session, reduced):
            values = self._row(table, row, reduced)
            values.pop("id", None)
            target = self._target(table, reduced)
            result = session.execute(update(target).where(target.c.id == entity_id).values(**values))
            if result.rowcount == 0:
                raise NotFoundError(missing)

        self._run(action, what)

    def _delete(self, table, entity_id: str, what: str, missing: str) -> None:
        def action(session, reduced):
            result = session.execute(delete(table).where(table.c.id == entity_id))
            if result.rowcount == 0:
                raise NotFoundError(missing)

        self._run(action, what)

    # --- 商品 ---

    def get_products(self) -> List[Product]:
        if not self.configured:
            return sample_data.sample_products()
        return self._fetch_all(products_table, mapping.row_to_product, ["-created_at"], "读取商品")

    def create_product(self, product: Product) -> Product:
        if not self.configured:
            return product
        product = product.model_copy(update={"id": assign_id(product.id)})
        self._insert(products_table, mapping.product_to_row(product), "新增商品")
        logger.info(f"新增商品: {product.id} {product.name}")
        return product

    def update_product(self, product: Product) -> Product:
        if not self.configured:
            return product
        self._update(products_table, product.id, mapping.product_to_row(product), "更新商品", "商品不存在")
        return product

    def delete_product(self, product_id: str) -> None:
        if not self.configured:
            return
        self._delete(products_table, product_id, "删除商品", "商品不存在")
        logger.info(f"删除商品: {product_id}")

    def update_product_stock(
        self,
        product: Product,
        movement_type: MovementType,
        quantity: int,
        price: Decimal,
        partner: str = "",
        reference_doc: str = "",
        note: str = "",
        date: Optional[datetime] = None,
        new_selling_price: Optional[Decimal] = None,
        movement_id: Optional[str] = None,
    ) -> Tuple[Product, InventoryLog]:
        """按变动前的商品快照写入一次出入库：更新商品行并追加流水

        流水ID已存在时说明这次变动已经写入过，不再重复写入。
        """
        change = compute_movement(product, movement_type, quantity, price, new_selling_price)
        updated = product.model_copy(update={
            "stock": change.new_stock,
            "import_price": change.new_import_price,
            "price": change.new_price,
        })
        created_at = now_local()
        log = InventoryLog(
            id=movement_id or new_movement_id(),
            product_id=product.id,
            product_name=product.name,
            type=movement_type,
            quantity=quantity,
            old_stock=product.stock,
            new_stock=change.new_stock,
            price=price,
            supplier=partner or None,
            reference_doc=reference_doc or None,
            note=note or None,
            date=date or created_at,
            created_at=created_at,
        )
        if not self.configured:
            return updated, log

        def action(session, reduced):
            exists = session.execute(
                select(logs_table.c.id).where(logs_table.c.id == log.id)
            ).first()
            if exists:
                logger.info(f"流水已存在，跳过写入: {log.id}")
                return False
            result = session.execute(
                update(products_table)
                .where(products_table.c.id == product.id)
                .values(stock=updated.stock, import_price=updated.import_price, price=updated.price)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"商品不存在：{product.name}")
            session.execute(insert(self._target(logs_table, reduced)).values(
                **self._row(logs_table, mapping.log_to_row(log), reduced)
            ))
            return True

        if self._run(action, "写入出入库流水"):
            logger.info(
                f"{movement_type.value} {product.name} x{quantity}: "
                f"库存 {product.stock} -> {updated.stock}，成本价 {updated.import_price}"
            )
        return updated, log

    # --- 出入库流水 ---

    def get_inventory_logs(self) -> List[InventoryLog]:
        if not self.configured:
            return sample_data.sample_logs()

        def action(session, reduced):
            names = {
                str(row.id): row.name
                for row in session.execute(select(products_table.c.id, products_table.c.name))
            }
            order_by = ["-created_at"] if reduced else ["-date", "-created_at"]
            rows = session.execute(self._select(logs_table, reduced, order_by)).mappings().all()
            return [mapping.row_to_log(row, names) for row in rows]

        return self._run(action, "读取出入库流水")

    # --- 订单 ---

    def get_orders(self) -> List[Order]:
        if not self.configured:
            return sample_data.sample_orders()

        def action(session, reduced):
            items: Dict[str, List[Any]] = {}
            item_rows = session.execute(
                self._select(order_items_table, reduced, ["id"])
            ).mappings().all()
            for item in item_rows:
                items.setdefault(str(item["order_id"]), []).append(item)
            rows = session.execute(
                self._select(orders_table, reduced, ["-created_at"])
            ).mappings().all()
            return [mapping.row_to_order(row, items.get(str(row["id"]), [])) for row in rows]

        return self._run(action, "读取订单")

    @staticmethod
    def _adjust_spending(session, customer_id: str, delta: Decimal) -> None:
        # 散客不统计累计消费
        if not delta or not customer_id or customer_id == GUEST_CUSTOMER_ID:
            return
        session.execute(
            update(customers_table)
            .where(customers_table.c.id == customer_id)
            .values(total_spending=func.coalesce(customers_table.c.total_spending, 0) + delta)
        )

    def _apply_spending(self, session, old: Optional[Order], new: Optional[Order]) -> None:
        old_status = old.status if old else None
        old_amount = old.payable_amount if old else Decimal("0")
        new_status = new.status if new else None
        new_amount = new.payable_amount if new else Decimal("0")
        if old and new and old.customer_id != new.customer_id:
            self._adjust_spending(session, old.customer_id,
                                  spending_delta(old_status, old_amount, None, Decimal("0")))
            self._adjust_spending(session, new.customer_id,
                                  spending_delta(None, Decimal("0"), new_status, new_amount))
            return
        customer_id = (new or old).customer_id
        self._adjust_spending(session, customer_id,
                              spending_delta(old_status, old_amount, new_status, new_amount))

    def _load_order(self, session, order_id: str, reduced: bool) -> Optional[Order]:
        target = self._target(orders_table, reduced)
        row = session.execute(select(target).where(target.c.id == order_id)).mappings().first()
        if row is None:
            return None
        return mapping.row_to_order(row, [])

    def _write_items(self, session, order: Order, reduced: bool) -> None:
        session.execute(delete(order_items_table).where(order_items_table.c.order_id == order.id))
        rows = [self._row(order_items_table, row, reduced) for row in mapping.order_items_to_rows(order)]
        if rows:
            session.execute(insert(self._target(order_items_table, reduced)), rows)

    def create_order(self, order: Order) -> Order:
        if not self.configured:
            return order
        order = order.model_copy(update={"id": assign_id(order.id)})

        def action(session, reduced):
            session.execute(insert(self._target(orders_table, reduced)).values(
                **self._row(orders_table, mapping.order_to_row(order), reduced)
            ))
            self._write_items(session, order, reduced)
            self._apply_spending(session, None, order)

        self._run(action, "新增订单")
        logger.info(f"新增订单: {order.id} {order.customer_name} {order.payable_amount}")
        return order

    def update_order(self, order: Order) -> Order:
        if not self.configured:
            return order

        def action(session, reduced):
            old = self._load_order(session, order.id, reduced)
            if old is None:
                raise NotFoundError("订单不存在")
            values = self._row(orders_table, mapping.order_to_row(order), reduced)
            values.pop("id")
            target = self._target(orders_table, reduced)
            session.execute(update(target).where(target.c.id == order.id).values(**values))
            self._write_items(session, order, reduced)
            self._apply_spending(session, old, order)

        self._run(action, "更新订单")
        return order

    def delete_order(self, order_id: str) -> None:
        if not self.configured:
            return

        def action(session, reduced):
            old = self._load_order(session, order_id, reduced)
            if old is None:
                raise NotFoundError("订单不存在")
            session.execute(delete(order_items_table).where(order_items_table.c.order_id == order_id))
            session.execute(delete(orders_table).where(orders_table.c.id == order_id))
            self._apply_spending(session, old, None)

        self._run(action, "删除订单")
        logger.info(f"删除订单: {order_id}")

    # --- 客户 ---

    def get_customers(self) -> List[Customer]:
        if not self.configured:
            return []
        return self._fetch_all(customers_table, mapping.row_to_customer, ["name"], "读取客户")

    def create_customer(self, customer: Customer) -> Customer:
        if not self.configured:
            return customer
        customer = customer.model_copy(update={"id": assign_id(customer.id)})
        self._insert(customers_table, mapping.customer_to_row(customer), "新增客户")
        return customer

    def update_customer(self, customer: Customer) -> Customer:
        if not self.configured:
            return customer
        row = mapping.customer_to_row(customer)
        # 累计消费只由订单维护
        row.pop("total_spending")
        self._update(customers_table, customer.id, row, "更新客户", "客户不存在")
        return customer

    def delete_customer(self, customer_id: str) -> None:
        if not self.configured:
            return
        self._delete(customers_table, customer_id, "删除客户", "客户不存在")

    def recalculate_customer_spending(self) -> List[Customer]:
        """按未取消订单的实付金额重新计算每个客户的累计消费"""
        if not self.configured:
            return []

        def action(session, reduced):
            totals: Dict[str, Decimal] = {}
            rows = session.execute(self._select(orders_table, reduced)).mappings().all()
            for row in rows:
                order = mapping.row_to_order(row, [])
                if order.status == OrderStatus.CANCELLED:
                    continue
                totals[order.customer_id] = totals.get(order.customer_id, Decimal("0")) + order.payable_amount

            customer_ids = session.execute(select(customers_table.c.id)).scalars().all()
            for customer_id in customer_ids:
                session.execute(
                    update(customers_table)
                    .where(customers_table.c.id == customer_id)
                    .values(total_spending=totals.get(str(customer_id), Decimal("0")))
                )
            return len(customer_ids)

        count = self._run(action, "重新计算累计消费")
        logger.info(f"已重新计算 {count} 个客户的累计消费")
        return self.get_customers()

    # --- 会员等级 ---

    def get_customer_ranks(self) -> List[CustomerRank]:
        if not self.configured:
            return []
        return self._fetch_all(ranks_table, mapping.row_to_rank, ["min_spending"], "读取会员等级")

    def save_customer_ranks(self, ranks: List[CustomerRank]) -> List[CustomerRank]:
        """整体替换会员等级"""
        if not self.configured:
            return ranks

        def action(session, reduced):
            session.execute(delete(ranks_table))
            rows = [self._row(ranks_table, mapping.rank_to_row(rank), reduced) for rank in ranks]
            if rows:
                session.execute(insert(self._target(ranks_table, reduced)), rows)

        self._run(action, "保存会员等级")
        return ranks

    # --- 供货商 ---

    def get_suppliers(self) -> List[Supplier]:
        if not self.configured:
            return sample_data.sample_suppliers()
        return self._fetch_all(suppliers_table, mapping.row_to_supplier, ["name"], "读取供货商")

    def create_supplier(self, supplier: Supplier) -> Supplier:
        if not self.configured:
            return supplier
        supplier = supplier.model_copy(update={"id": assign_id(supplier.id)})
        self._insert(suppliers_table, mapping.supplier_to_row(supplier), "新增供货商")
        return supplier

    def update_supplier(self, supplier: Supplier) -> Supplier:
        if not self.configured:
            return supplier
        self._update(suppliers_table, supplier.id, mapping.supplier_to_row(supplier), "更新供货商", "供货商不存在")
        return supplier

    def delete_supplier(self, supplier_id: str) -> None:
        if not self.configured:
            return
        self._delete(suppliers_table, supplier_id, "删除供货商", "供货商不存在")

    def update_supplier_debt(
        self,
        supplier_id: str,
        debt_change: Decimal,
        purchase_change: Decimal = Decimal("0"),
    ) -> Optional[Supplier]:
        """在数据库当前值的基础上增减欠款和累计进货金额"""
        if not self.configured:
            return None

        def action(session, reduced):
            result = session.execute(
                update(suppliers_table)
                .where(suppliers_table.c.id == supplier_id)
                .values(
                    debt=func.coalesce(suppliers_table.c.debt, 0) + debt_change,
                    total_purchased=func.coalesce(suppliers_table.c.total_purchased, 0) + purchase_change,
                )
            )
            if result.rowcount == 0:
                raise NotFoundError("供货商不存在")
            row = session.execute(
                select(suppliers_table).where(suppliers_table.c.id == supplier_id)
            ).mappings().first()
            return mapping.row_to_supplier(row)

        supplier = self._run(action, "更新供货商欠款")
        logger.info(f"供货商 {supplier.name} 欠款变动 {debt_change}，当前欠款 {supplier.debt}")
        return supplier

    # --- 用户 ---

    def get_users(self) -> List[User]:
        if not self.configured:
            return sample_data.sample_users()
        return self._fetch_all(users_table, mapping.row_to_user, ["email"], "读取用户")

    def create_user(self, user: User, password: Optional[str] = None) -> User:
        if not self.configured:
            return user
        user = user.model_copy(update={"id": assign_id(user.id)})
        password_hash = get_password_hash(password) if password else None
        self._insert(users_table, mapping.user_to_row(user, password_hash), "新增用户")
        logger.info(f"新增用户: {user.email}")
        return user

    def update_user(self, user: User, password: Optional[str] = None) -> User:
        if not self.configured:
            return user
        password_hash = get_password_hash(password) if password else None
        self._update(users_table, user.id, mapping.user_to_row(user, password_hash), "更新用户", "用户不存在")
        return user

    def delete_user(self, user_id: str) -> None:
        if not self.configured:
            return
        self._delete(users_table, user_id, "删除用户", "用户不存在")

    def change_password(self, user_id: str, new_password: str) -> None:
        if not self.configured:
            return
        self._update(
            users_table, user_id, {"password_hash": get_password_hash(new_password)},
            "修改密码", "用户不存在",
        )
        logger.info(f"用户 {user_id} 已修改密码")

    def get_user_password_hash(self, user_id: str) -> Optional[str]:
        """读取用户的密码哈希，未设置密码时为 None"""
        if not self.configured:
            return None

        def action(session, reduced):
            row = session.execute(
                select(users_table.c.password_hash).where(users_table.c.id == user_id)
            ).first()
            if row is None:
                raise NotFoundError("用户不存在")
            return row.password_hash

        return self._run(action, "读取用户密码")

    # --- 促销 ---

    def get_promotions(self) -> List[Promotion]:
        if not self.configured:
            return []
        return self._fetch_all(promotions_table, mapping.row_to_promotion, ["-start_date"], "读取促销")

    def create_promotion(self, promotion: Promotion) -> Promotion:
        if not self.configured:
            return promotion
        promotion = promotion.model_copy(update={"id": assign_id(promotion.id)})
        self._insert(promotions_table, mapping.promotion_to_row(promotion), "新增促销")
        return promotion

    def update_promotion(self, promotion: Promotion) -> Promotion:
        if not self.configured:
            return promotion
        self._update(
            promotions_table, promotion.id, mapping.promotion_to_row(promotion), "更新促销", "促销不存在"
        )
        return promotion

    def delete_promotion(self, promotion_id: str) -> None:
        if not self.configured:
            return
        self._delete(promotions_table, promotion_id, "删除促销", "促销不存在")
