"""
业务协调器测试：乐观更新、失败回滚、出入库联动
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import make_item, make_product
from shopledger.core.errors import (
    ConsoleError, InsufficientStockError, InvalidPaymentError, NotFoundError,
    PermissionDeniedError, StoreError, ValidationError,
)
from shopledger.schemas.customer import Customer, CustomerRank
from shopledger.schemas.inventory import MovementType
from shopledger.schemas.order import GUEST_CUSTOMER_ID, Order, OrderCreate, OrderItem, OrderStatus
from shopledger.schemas.promotion import Promotion, PromotionType
from shopledger.schemas.supplier import Supplier
from shopledger.schemas.user import User, UserRole
from shopledger.services.console import AppState, Console, generate_export_doc
from shopledger.services.gateway import StoreGateway


class FlakyGateway(StoreGateway):
    """在指定方法的第 N 次调用时抛出存储错误"""

    def __init__(self, session_factory=None, **failures):
        super().__init__(session_factory)
        self.failures = failures
        self.calls = {}

    def _tick(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.failures.get(name) == self.calls[name]:
            raise StoreError("connection reset by peer")

    def create_product(self, product):
        self._tick("create_product")
        return super().create_product(product)

    def update_product(self, product):
        self._tick("update_product")
        return super().update_product(product)

    def delete_product(self, product_id):
        self._tick("delete_product")
        return super().delete_product(product_id)

    def update_product_stock(self, *args, **kwargs):
        self._tick("update_product_stock")
        return super().update_product_stock(*args, **kwargs)

    def create_order(self, order):
        self._tick("create_order")
        return super().create_order(order)

    def save_customer_ranks(self, ranks):
        self._tick("save_customer_ranks")
        return super().save_customer_ranks(ranks)


ADMIN = User(id="U1", email="admin@shopledger.vn", name="管理员", role=UserRole.ADMIN)
STAFF = User(id="U2", email="staff@shopledger.vn", name="员工", role=UserRole.STAFF)


def flaky_console(session_factory, **failures) -> Console:
    console = Console(FlakyGateway(session_factory, **failures))
    console.load()
    return console


@pytest.fixture
def stocked(gateway):
    """两件商品、一个供货商、一个客户和两个用户"""
    gateway.create_product(make_product(id="P1", code="SP-1", name="衬衫", stock=10,
                                        import_price=Decimal("1000"), price=Decimal("5000")))
    gateway.create_product(make_product(id="P2", code="SP-2", name="裤子", stock=20,
                                        import_price=Decimal("2000"), price=Decimal("8000")))
    gateway.create_supplier(Supplier(id="S1", name="华南服装厂"))
    gateway.create_customer(Customer(id="C1", name="张伟"))
    gateway.create_user(ADMIN, password="secret123")
    gateway.create_user(STAFF)
    return gateway


@pytest.fixture
def console(stocked):
    console = Console(stocked)
    console.load()
    return console


class TestRollback:

    def test_failed_create_is_reverted(self, session_factory):
        console = flaky_console(session_factory, create_product=1)
        with pytest.raises(ConsoleError) as excinfo:
            console.save_product(make_product(id=""))
        assert "无法保存商品" in excinfo.value.message
        assert "connection reset" in excinfo.value.message
        assert console.snapshot("products") == []

    def test_failed_update_is_reverted(self, stocked, session_factory):
        console = flaky_console(session_factory, update_product=1)
        original = console.find("products", "P1")
        with pytest.raises(ConsoleError):
            console.save_product(original.model_copy(update={"name": "改名"}))
        assert console.find("products", "P1") == original

    def test_failed_delete_is_reverted(self, stocked, session_factory):
        console = flaky_console(session_factory, delete_product=1)
        admin = console.user_by_email("admin@shopledger.vn")
        with pytest.raises(ConsoleError):
            console.delete_product("P1", admin)
        assert console.find("products", "P1").name == "衬衫"
        assert [p.id for p in console.snapshot("products")].count("P1") == 1

    def test_failed_rank_save_is_reverted(self, session_factory):
        console = flaky_console(session_factory, save_customer_ranks=1)
        with pytest.raises(ConsoleError):
            console.save_ranks([CustomerRank(id="R1", name="金卡", min_spending=Decimal("10000"))])
        assert console.snapshot("ranks") == []

    def test_missing_table_message(self, engine, session_factory):
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE products")
        console = Console(StoreGateway(session_factory))
        with pytest.raises(ConsoleError) as excinfo:
            console.save_product(make_product(id="P9"))
        assert "数据表尚未创建" in excinfo.value.message


class TestSaveAndDelete:

    def test_temp_id_is_replaced(self, console):
        saved = console.save_product(make_product(id="TEMP-123"))
        assert not saved.id.startswith("TEMP")
        assert console.snapshot("products")[0].id == saved.id
        assert saved.id in {p.id for p in console.gateway.get_products()}

    def test_new_records_go_first(self, console):
        console.save_product(make_product(id="A"))
        console.save_product(make_product(id="B"))
        assert [p.id for p in console.snapshot("products")][:2] == ["B", "A"]

    def test_delete_product_requires_admin(self, console):
        with pytest.raises(PermissionDeniedError):
            console.delete_product("P1", None)
        with pytest.raises(PermissionDeniedError):
            console.delete_product("P1", console.user_by_email("staff@shopledger.vn"))
        console.delete_product("P1", console.user_by_email("ADMIN@shopledger.vn"))
        with pytest.raises(NotFoundError):
            console.find("products", "P1")

    def test_customer_spending_is_kept(self, console):
        console.save_order(Order(
            id="O1", customer_id="C1", customer_name="张伟",
            items=[OrderItem(product_id="P1", quantity=1, price=Decimal("500"))],
            total_amount=Decimal("500"), final_amount=Decimal("500"), date=datetime(2024, 1, 1),
        ))
        customer = console.find("customers", "C1")
        assert customer.total_spending == Decimal("500")

        saved = console.save_customer(customer.model_copy(update={"phone": "0900", "total_spending": Decimal("0")}))
        assert saved.total_spending == Decimal("500")
        assert saved.phone == "0900"

    def test_supplier_debt_is_kept(self, console):
        supplier = console.find("suppliers", "S1")
        saved = console.save_supplier(supplier.model_copy(update={"debt": Decimal("999999")}))
        assert saved.debt == Decimal("0")

    def test_missing_delete(self, console):
        with pytest.raises(NotFoundError, match="订单不存在"):
            console.delete_order("NOPE")


class TestUsers:

    def test_only_admin_manages_users(self, console):
        staff = console.user_by_email("staff@shopledger.vn")
        new_user = User(id="", email="new@shopledger.vn", name="新员工")
        with pytest.raises(PermissionDeniedError):
            console.save_user(new_user, "secret123", actor=staff)

        admin = console.user_by_email("admin@shopledger.vn")
        saved = console.save_user(new_user, "secret123", actor=admin)
        assert console.user_by_email("new@shopledger.vn").id == saved.id

    def test_duplicate_email(self, console):
        admin = console.user_by_email("admin@shopledger.vn")
        with pytest.raises(ValidationError, match="邮箱已被使用"):
            console.save_user(User(id="", email="Staff@shopledger.vn", name="重复"), actor=admin)

    def test_cannot_delete_self(self, console):
        admin = console.user_by_email("admin@shopledger.vn")
        with pytest.raises(ValidationError):
            console.delete_user(admin.id, admin)
        console.delete_user("U2", admin)
        assert console.user_by_email("staff@shopledger.vn") is None

    def test_change_password_checks_current(self, console):
        with pytest.raises(ValidationError, match="当前密码不正确"):
            console.change_password("U1", "another456", current_password="wrong")
        console.change_password("U1", "another456", current_password="secret123")
        console.change_password("U1", "third789", current_password="another456")


class TestInventoryUpdate:

    def test_import_updates_cost_and_supplier_debt(self, console):
        p1 = console.find("products", "P1")
        result = console.inventory_update(
            [make_item(p1, 10, 3000)], MovementType.IMPORT, partner="华南服装厂",
            reference_doc="PN-1", paid_amount=Decimal("10000"),
        )
        assert result.products[0].stock == 20
        assert result.products[0].import_price == Decimal("2000")
        assert result.order is None

        supplier = console.find("suppliers", "S1")
        assert supplier.debt == Decimal("20000")
        assert supplier.total_purchased == Decimal("30000")
        stored = console.gateway.get_suppliers()[0]
        assert stored.debt == Decimal("20000")

        history = console.supplier_history("S1")
        assert history.total_imports == 1
        assert history.total_value == Decimal("30000")

    def test_overpaid_import_adds_no_debt(self, console):
        p1 = console.find("products", "P1")
        console.inventory_update([make_item(p1, 1, 1000)], MovementType.IMPORT,
                                 partner="华南服装厂", paid_amount=Decimal("5000"))
        supplier = console.find("suppliers", "S1")
        assert supplier.debt == Decimal("0")
        assert supplier.total_purchased == Decimal("1000")

    def test_unknown_supplier_is_ignored(self, console):
        p1 = console.find("products", "P1")
        console.inventory_update([make_item(p1, 1, 1000)], MovementType.IMPORT, partner="华南服装")
        assert console.find("suppliers", "S1").debt == Decimal("0")

    def test_export_creates_delivered_order(self, console):
        p1 = console.find("products", "P1")
        result = console.inventory_update(
            [make_item(p1, 2, 5000)], MovementType.EXPORT, partner=" 张伟 ",
            discount_amount=Decimal("1000"),
        )
        order = result.order
        assert order.id == result.reference_doc
        assert order.id.startswith("EXP-") and len(order.id) == 10
        assert order.status == OrderStatus.DELIVERED
        assert order.customer_id == "C1"
        assert order.final_amount == Decimal("9000")
        assert result.logs[0].reference_doc == order.id

        assert console.find("products", "P1").stock == 8
        assert console.find("customers", "C1").total_spending == Decimal("9000")
        assert console.gateway.get_customers()[0].total_spending == Decimal("9000")
        assert console.gateway.get_orders()[0].id == order.id

    def test_export_order_shares_log_date(self, console):
        p1 = console.find("products", "P1")
        result = console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT)
        assert result.order.date == result.logs[0].date

        when = datetime(2024, 3, 8, 23, 59, 59)
        result = console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT, date=when)
        assert result.order.date == result.logs[0].date == when

    def test_export_to_walk_in_customer(self, console):
        p1 = console.find("products", "P1")
        order = console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT).order
        assert order.customer_id == GUEST_CUSTOMER_ID
        assert order.customer_name == "散客"

        order = console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT, partner="路人").order
        assert order.customer_id == GUEST_CUSTOMER_ID
        assert order.customer_name == "路人"

    def test_export_duplicate_doc(self, console):
        p1 = console.find("products", "P1")
        console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT, reference_doc="HD-1")
        with pytest.raises(ValidationError, match="单据号已存在"):
            console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT, reference_doc="HD-1")
        assert console.find("products", "P1").stock == 9

    def test_export_shortage_changes_nothing(self, console):
        p1, p2 = console.find("products", "P1"), console.find("products", "P2")
        logs_before = console.snapshot("logs")
        with pytest.raises(InsufficientStockError):
            console.inventory_update([make_item(p2, 1, 8000), make_item(p1, 11, 5000)], MovementType.EXPORT)
        assert console.find("products", "P2").stock == 20
        assert console.snapshot("logs") == logs_before
        assert console.snapshot("orders") == []

    def test_partial_batch_failure_keeps_local_state(self, stocked, session_factory):
        console = flaky_console(session_factory, update_product_stock=2)
        p1, p2 = console.find("products", "P1"), console.find("products", "P2")
        with pytest.raises(ConsoleError) as excinfo:
            console.inventory_update([make_item(p1, 5, 1000), make_item(p2, 5, 2000)], MovementType.IMPORT)

        assert excinfo.value.persisted == 1
        assert "已保存 1 项" in excinfo.value.message
        # 本地两项都已应用，数据库只有第一项
        assert console.find("products", "P1").stock == 15
        assert console.find("products", "P2").stock == 25
        assert len(console.snapshot("logs")) == 2
        stored = {p.id: p.stock for p in console.gateway.get_products()}
        assert stored == {"P1": 15, "P2": 20}
        assert len(console.gateway.get_inventory_logs()) == 1

    def test_failed_sale_order_reports_persisted_movements(self, stocked, session_factory):
        console = flaky_console(session_factory, create_order=1)
        p1 = console.find("products", "P1")
        with pytest.raises(ConsoleError) as excinfo:
            console.inventory_update([make_item(p1, 1, 5000)], MovementType.EXPORT)
        assert excinfo.value.persisted == 1
        assert {p.id: p.stock for p in console.gateway.get_products()}["P1"] == 9
        assert console.snapshot("orders") == []


class TestOrders:

    def test_build_order_applies_promotion(self, console):
        console.save_promotion(Promotion(id="PR1", code="SALE10", name="九折",
                                         type=PromotionType.DISCOUNT_PERCENT, value=Decimal("10")))
        order = console.build_order(OrderCreate(
            id="O1", customer_id="C1",
            items=[OrderItem(product_id="P1", quantity=2, price=Decimal("5000"))],
            promotion_id="PR1", date=datetime(2024, 5, 1),
        ))
        assert order.customer_name == "张伟"
        assert order.items[0].product_name == "衬衫"
        assert order.total_amount == Decimal("10000")
        assert order.discount_amount == Decimal("1000")
        assert order.final_amount == Decimal("9000")

    def test_build_order_rejects_expired_promotion(self, console):
        console.save_promotion(Promotion(id="PR1", code="OLD", name="过期", type=PromotionType.DISCOUNT_AMOUNT,
                                         value=Decimal("100"), end_date=date(2024, 1, 31)))
        with pytest.raises(ValidationError, match="促销不可用"):
            console.build_order(OrderCreate(
                items=[OrderItem(product_id="P1", quantity=1, price=Decimal("5000"))],
                promotion_id="PR1", date=datetime(2024, 2, 1),
            ))

    def test_editing_delivered_order_moves_stock(self, console):
        p1 = console.find("products", "P1")
        order = console.inventory_update([make_item(p1, 2, 5000)], MovementType.EXPORT, partner="张伟").order
        assert console.find("products", "P1").stock == 8

        more = console.build_order(OrderCreate(
            customer_id="C1", status=OrderStatus.DELIVERED,
            items=[OrderItem(product_id="P1", quantity=5, price=Decimal("5000"))],
        ), order.id)
        console.save_order(more)
        assert console.find("products", "P1").stock == 5
        log = console.snapshot("logs")[0]
        assert log.type == MovementType.EXPORT
        assert log.quantity == 3
        assert log.reference_doc == order.id
        assert log.supplier == f"调整订单 {order.id}"
        assert console.find("customers", "C1").total_spending == Decimal("25000")

        fewer = console.build_order(OrderCreate(
            customer_id="C1", status=OrderStatus.DELIVERED,
            items=[OrderItem(product_id="P1", quantity=1, price=Decimal("5000"))],
        ), order.id)
        console.save_order(fewer)
        assert console.find("products", "P1").stock == 9
        log = console.snapshot("logs")[0]
        assert log.type == MovementType.IMPORT
        assert log.quantity == 4
        assert log.price == Decimal("5000")
        assert {p.id: p.stock for p in console.gateway.get_products()}["P1"] == 9

    def test_edit_beyond_stock_is_rejected(self, console):
        p1 = console.find("products", "P1")
        order = console.inventory_update([make_item(p1, 2, 5000)], MovementType.EXPORT).order
        too_many = order.model_copy(update={
            "items": [OrderItem(product_id="P1", quantity=50, price=Decimal("5000"))],
        })
        with pytest.raises(InsufficientStockError):
            console.save_order(too_many)
        assert console.find("orders", order.id).items[0].quantity == 2
        assert console.find("products", "P1").stock == 8

    def test_pending_order_edit_does_not_move_stock(self, console):
        order = console.save_order(Order(
            id="O1", customer_id="C1", items=[OrderItem(product_id="P1", quantity=1, price=Decimal("5000"))],
            total_amount=Decimal("5000"), date=datetime(2024, 1, 1),
        ))
        console.save_order(order.model_copy(update={
            "items": [OrderItem(product_id="P1", quantity=9, price=Decimal("5000"))],
        }))
        assert console.find("products", "P1").stock == 10
        assert console.snapshot("logs") == []

    def test_cancel_and_delete_adjust_spending(self, console):
        order = console.save_order(Order(
            id="O1", customer_id="C1", items=[OrderItem(product_id="P1", quantity=1, price=Decimal("700"))],
            total_amount=Decimal("700"), date=datetime(2024, 1, 1),
        ))
        assert console.find("customers", "C1").total_spending == Decimal("700")
        console.save_order(order.model_copy(update={"status": OrderStatus.CANCELLED}))
        assert console.find("customers", "C1").total_spending == Decimal("0")
        console.save_order(order)
        console.delete_order("O1")
        assert console.find("customers", "C1").total_spending == Decimal("0")
        assert console.gateway.get_customers()[0].total_spending == Decimal("0")


class TestSupplierPayments:

    def test_payment_rules(self, console):
        p1 = console.find("products", "P1")
        console.inventory_update([make_item(p1, 1, 1000)], MovementType.IMPORT, partner="华南服装厂")
        with pytest.raises(InvalidPaymentError):
            console.pay_supplier_debt("S1", Decimal("0"))
        with pytest.raises(InvalidPaymentError):
            console.pay_supplier_debt("S1", Decimal("1001"))

        supplier = console.pay_supplier_debt("S1", Decimal("400"))
        assert supplier.debt == Decimal("600")
        assert supplier.total_purchased == Decimal("1000")
        assert console.gateway.get_suppliers()[0].debt == Decimal("600")


class TestWithoutDatabase:

    def test_sample_data_in_memory(self):
        console = Console(StoreGateway())
        console.load()
        product = console.find("products", "P001")
        result = console.inventory_update([make_item(product, 10, 150000)], MovementType.IMPORT)
        assert result.products[0].stock == product.stock + 10
        assert console.find("products", "P001").stock == product.stock + 10

        supplier = console.find("suppliers", "S001")
        console.inventory_update([make_item(product, 1, 150000)], MovementType.IMPORT, partner=supplier.name)
        assert console.find("suppliers", "S001").debt == supplier.debt + Decimal("150000")

    def test_recalculate_spending_locally(self):
        state = AppState(
            customers=[Customer(id="C1", name="张伟", total_spending=Decimal("1"))],
            orders=[
                Order(id="O1", customer_id="C1", total_amount=Decimal("300"), date=datetime(2024, 1, 1)),
                Order(id="O2", customer_id="C1", total_amount=Decimal("900"), date=datetime(2024, 1, 2),
                      status=OrderStatus.CANCELLED),
            ],
        )
        console = Console(StoreGateway(), state)
        customers = console.recalculate_spending()
        assert customers[0].total_spending == Decimal("300")

    def test_generate_export_doc_avoids_existing(self):
        first = generate_export_doc([])
        assert first.startswith("EXP-")
        second = generate_export_doc([first])
        assert second != first
        assert len(second) == 10
