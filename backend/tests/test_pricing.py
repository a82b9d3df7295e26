"""
订单金额、促销、会员等级和权限计算测试
"""
from datetime import date
from decimal import Decimal

from shopledger.schemas.customer import CustomerRank
from shopledger.schemas.order import OrderItem, OrderStatus
from shopledger.schemas.promotion import Promotion, PromotionType
from shopledger.schemas.user import User, UserRole
from shopledger.services.pricing import (
    calculate_discount, has_permission, is_promotion_active, order_totals, rank_for, spending_delta,
)


def make_promotion(**overrides) -> Promotion:
    values = {
        "id": "PR1",
        "code": "SALE10",
        "name": "九折",
        "type": PromotionType.DISCOUNT_PERCENT,
        "value": Decimal("10"),
    }
    values.update(overrides)
    return Promotion(**values)


class TestOrderTotals:

    def test_total_and_final(self):
        items = [
            OrderItem(product_id="P1", quantity=2, price=Decimal("250")),
            OrderItem(product_id="P2", quantity=1, price=Decimal("100")),
        ]
        assert order_totals(items) == (Decimal("600"), Decimal("600"))
        assert order_totals(items, Decimal("50")) == (Decimal("600"), Decimal("550"))

    def test_final_never_negative(self):
        items = [OrderItem(product_id="P1", quantity=1, price=Decimal("100"))]
        assert order_totals(items, Decimal("500"))[1] == Decimal("0")


class TestCalculateDiscount:

    def test_percent_rounds_half_up(self):
        promotion = make_promotion(value=Decimal("15"))
        # 1010 * 15% = 151.5
        assert calculate_discount(Decimal("1010"), promotion) == Decimal("152")

    def test_fixed_amount(self):
        promotion = make_promotion(type=PromotionType.DISCOUNT_AMOUNT, value=Decimal("20000"))
        assert calculate_discount(Decimal("100000"), promotion) == Decimal("20000")

    def test_conditions(self):
        promotion = make_promotion(min_order_value=Decimal("1000"), min_customer_spending=Decimal("5000"))
        assert calculate_discount(Decimal("999"), promotion, Decimal("9999")) == Decimal("0")
        assert calculate_discount(Decimal("1000"), promotion, Decimal("4999")) == Decimal("0")
        assert calculate_discount(Decimal("1000"), promotion, Decimal("5000")) == Decimal("100")

    def test_no_promotion(self):
        assert calculate_discount(Decimal("1000"), None) == Decimal("0")

    def test_active_window(self):
        promotion = make_promotion(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        assert is_promotion_active(promotion, date(2024, 1, 31))
        assert not is_promotion_active(promotion, date(2024, 2, 1))
        assert not is_promotion_active(make_promotion(is_active=False), date(2024, 1, 10))


class TestSpending:

    def test_delta(self):
        amount = Decimal("100")
        assert spending_delta(None, Decimal("0"), OrderStatus.PENDING, amount) == amount
        assert spending_delta(OrderStatus.PENDING, amount, OrderStatus.CANCELLED, amount) == -amount
        assert spending_delta(OrderStatus.DELIVERED, amount, OrderStatus.DELIVERED, Decimal("150")) == Decimal("50")
        assert spending_delta(OrderStatus.CANCELLED, amount, None, Decimal("0")) == Decimal("0")

    def test_rank_for(self):
        ranks = [
            CustomerRank(id="R1", name="普通", min_spending=Decimal("0")),
            CustomerRank(id="R3", name="金卡", min_spending=Decimal("10000")),
            CustomerRank(id="R2", name="银卡", min_spending=Decimal("5000")),
        ]
        assert rank_for(Decimal("7000"), ranks).id == "R2"
        assert rank_for(Decimal("10000"), ranks).id == "R3"
        assert rank_for(Decimal("-1"), ranks) is None


class TestPermissions:

    def test_admin_and_staff(self):
        admin = User(id="U1", email="admin@shopledger.vn", name="管理员", role=UserRole.ADMIN)
        staff = User(id="U2", email="staff@shopledger.vn", name="员工", permissions=["VIEW_ORDERS"])
        assert has_permission(admin, "ANYTHING")
        assert has_permission(staff, "VIEW_ORDERS")
        assert not has_permission(staff, "MANAGE_USERS")
        assert not has_permission(None, "VIEW_ORDERS")
