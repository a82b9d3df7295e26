"""
API公共依赖
"""
from typing import Optional

from fastapi import Depends, Header, Request

from shopledger.schemas.user import User
from shopledger.services.console import Console


def get_console(request: Request) -> Console:
    """获取应用状态协调器"""
    return request.app.state.console


def get_actor(
    x_user_email: Optional[str] = Header(None, description="当前操作用户的邮箱"),
    console: Console = Depends(get_console),
) -> Optional[User]:
    """当前操作用户（登录由外部系统负责，这里只按邮箱查找）"""
    return console.user_by_email(x_user_email)


def paginate(items: list, skip: int, limit: int) -> list:
    return items[skip:skip + limit]
