"""
用户管理API
"""
from fastapi import APIRouter, Depends
from typing import List, Optional
from shopledger.api.deps import get_actor, get_console, paginate
from shopledger.schemas.user import PasswordChange, User, UserCreate, UserUpdate
from shopledger.services.console import Console

router = APIRouter(prefix="/api/users", tags=["用户管理"])


@router.get("", response_model=List[User])
def get_users(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    console: Console = Depends(get_console)
):
    """获取用户列表"""
    users = console.snapshot("users")

    if search:
        term = search.lower()
        users = [u for u in users if term in u.name.lower() or term in u.email.lower()]

    return paginate(users, skip, limit)


@router.get("/{user_id}", response_model=User)
def get_user(user_id: str, console: Console = Depends(get_console)):
    """获取用户详情"""
    return console.find("users", user_id)


@router.post("", response_model=User)
def create_user(
    user: UserCreate,
    console: Console = Depends(get_console),
    actor: Optional[User] = Depends(get_actor)
):
    """创建用户（仅管理员）"""
    data = user.model_dump(exclude={"password"})
    return console.save_user(User(id="", **data), password=user.password, actor=actor)


@router.put("/{user_id}", response_model=User)
def update_user(
    user_id: str,
    user_update: UserUpdate,
    console: Console = Depends(get_console),
    actor: Optional[User] = Depends(get_actor)
):
    """更新用户（仅管理员）"""
    db_user = console.find("users", user_id)
    update_data = user_update.model_dump(exclude_unset=True)
    password = update_data.pop("password", None)
    return console.save_user(db_user.model_copy(update=update_data), password=password, actor=actor)


@router.put("/{user_id}/password")
def change_password(
    user_id: str,
    password_change: PasswordChange,
    console: Console = Depends(get_console)
):
    """修改密码"""
    console.change_password(
        user_id, password_change.new_password, password_change.current_password
    )
    return {"message": "密码已修改"}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    console: Console = Depends(get_console),
    actor: Optional[User] = Depends(get_actor)
):
    """删除用户（仅管理员）"""
    console.delete_user(user_id, actor)
    return {"message": "用户删除成功"}
