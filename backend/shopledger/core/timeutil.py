"""
时间处理工具
所有时间统一为业务时区的本地时间（不带时区信息）
"""
from datetime import date, datetime, time
from typing import Optional, Tuple, Union
from shopledger.core.config import LOCAL_TZ


def now_local() -> datetime:
    """当前本地时间"""
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def to_local_naive(value: Optional[Union[datetime, date]]) -> Optional[datetime]:
    """转换为本地时间；带时区的时间先换算到业务时区"""
    if value is None:
        return None
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value.tzinfo is not None:
        value = value.astimezone(LOCAL_TZ).replace(tzinfo=None)
    return value


def day_range(start_date: date, end_date: date) -> Tuple[datetime, datetime]:
    """日期区间：开始日期 00:00:00 到结束日期 23:59:59.999999"""
    return (
        datetime.combine(start_date, time.min),
        datetime.combine(end_date, time.max),
    )


def format_datetime_local(dt: Optional[datetime]) -> Optional[str]:
    """格式化为本地时间字符串"""
    if dt is None:
        return None
    return to_local_naive(dt).strftime("%Y-%m-%d %H:%M:%S")
