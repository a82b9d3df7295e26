"""
订单金额、促销、会员等级和权限的计算
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from shopledger.schemas.customer import CustomerRank
from shopledger.schemas.order import OrderItem, OrderStatus
from shopledger.schemas.promotion import Promotion, PromotionType
from shopledger.schemas.user import User, UserRole
from shopledger.services.ledger import round_money


def order_totals(items: Iterable[OrderItem], discount: Decimal = Decimal("0")) -> Tuple[Decimal, Decimal]:
    """返回 (总金额, 实付金额)，实付金额不小于0"""
    total = sum((item.price * item.quantity for item in items), Decimal("0"))
    return total, max(Decimal("0"), total - discount)


def calculate_discount(
    total: Decimal,
    promotion: Optional[Promotion],
    customer_spending: Decimal = Decimal("0"),
) -> Decimal:
    """按促销规则计算优惠金额，不满足条件时为0"""
    if promotion is None:
        return Decimal("0")
    if promotion.min_order_value and total < promotion.min_order_value:
        return Decimal("0")
    if promotion.min_customer_spending and customer_spending < promotion.min_customer_spending:
        return Decimal("0")

    if promotion.type == PromotionType.DISCOUNT_AMOUNT:
        return promotion.value
    if promotion.type == PromotionType.DISCOUNT_PERCENT:
        return round_money(total * promotion.value / 100)
    return Decimal("0")


def spending_delta(
    old_status: Optional[OrderStatus],
    old_amount: Decimal,
    new_status: Optional[OrderStatus],
    new_amount: Decimal,
) -> Decimal:
    """订单变化引起的客户累计消费变化，已取消（或不存在）的订单计0"""
    def counted(status: Optional[OrderStatus], amount: Decimal) -> Decimal:
        if status is None or status == OrderStatus.CANCELLED:
            return Decimal("0")
        return amount

    return counted(new_status, new_amount) - counted(old_status, old_amount)


def rank_for(spending: Decimal, ranks: Sequence[CustomerRank]) -> Optional[CustomerRank]:
    """累计消费达到的最高等级"""
    for rank in sorted(ranks, key=lambda r: r.min_spending, reverse=True):
        if spending >= rank.min_spending:
            return rank
    return None


def has_permission(user: Optional[User], permission: str) -> bool:
    """管理员拥有全部权限，员工只拥有列出的权限"""
    if user is None:
        return False
    if user.role == UserRole.ADMIN:
        return True
    return permission in (user.permissions or [])


def is_promotion_active(promotion: Promotion, on: date) -> bool:
    """促销已启用且日期在有效期内（未设置的一端不限制）"""
    if not promotion.is_active:
        return False
    if promotion.start_date and on < promotion.start_date:
        return False
    if promotion.end_date and on > promotion.end_date:
        return False
    return True
