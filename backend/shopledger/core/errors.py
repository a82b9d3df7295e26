"""
业务异常定义

校验类错误在修改任何数据之前抛出；存储类错误在乐观更新之后才会出现，
由调用方决定是否回滚。界面只接收一条可读的错误信息。
"""
from typing import List, Optional, Tuple


class ShopLedgerError(Exception):
    """所有业务异常的基类"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(ShopLedgerError):
    """校验失败（未产生任何修改）"""


class InsufficientStockError(ValidationError):
    """出库数量超过库存"""

    def __init__(self, shortages: List[Tuple[str, int, int]]):
        # shortages: [(商品名称, 需要数量, 可用数量)]
        self.shortages = shortages
        details = "；".join(
            f"{name}（需要 {requested}，可用 {available}）"
            for name, requested, available in shortages
        )
        super().__init__(f"库存不足：{details}")


class InvalidPaymentError(ValidationError):
    """付款金额不合法"""


class PermissionDeniedError(ValidationError):
    """无操作权限"""


class StoreError(ShopLedgerError):
    """数据库读写失败"""

    def __init__(self, message: str, original: Optional[Exception] = None):
        super().__init__(message)
        self.original = original


class SchemaMismatchError(StoreError):
    """数据库表结构与应用不一致（缺少表或字段）"""


class NotFoundError(StoreError):
    """记录不存在"""


class ConsoleError(ShopLedgerError):
    """保存操作失败，message 为展示给用户的信息"""

    def __init__(self, context: str, cause: Exception, persisted: Optional[int] = None):
        self.context = context
        self.cause = cause
        self.persisted = persisted
        message = describe_error(cause, context)
        if persisted is not None:
            message = f"{message}（已保存 {persisted} 项）"
        super().__init__(message)


def describe_error(exc: Exception, context: str) -> str:
    """将异常转换为可读的错误信息"""
    if isinstance(exc, ShopLedgerError):
        message = exc.message
    else:
        message = str(exc) or exc.__class__.__name__

    lower_msg = message.lower()
    if ("relation" in lower_msg and "does not exist" in lower_msg) or "no such table" in lower_msg:
        return f"无法保存{context}：数据表尚未创建，请先初始化数据库。"
    if "column" in lower_msg:
        return f"无法保存{context}：数据库缺少新字段，请先升级表结构。（{message}）"
    if "permission denied" in lower_msg:
        return f"无法保存{context}：数据库拒绝访问（permission denied）。"
    return f"无法保存{context}：{message}"
