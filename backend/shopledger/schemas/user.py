"""
用户相关的Pydantic模型
"""
from enum import Enum
from pydantic import BaseModel, Field, EmailStr, field_serializer
from typing import List, Optional
from datetime import datetime
from shopledger.core.timeutil import format_datetime_local


class UserRole(str, Enum):
    """角色"""
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class UserBase(BaseModel):
    """用户基础模型"""
    email: EmailStr = Field(..., description="登录邮箱")
    name: str = Field(..., description="姓名", max_length=100)
    phone: str = Field("", description="电话", max_length=20)
    role: UserRole = Field(UserRole.STAFF, description="角色")
    permissions: List[str] = Field(default_factory=list, description="权限列表（管理员忽略）")


class UserCreate(UserBase):
    """创建用户模型"""
    password: Optional[str] = Field(None, description="密码", min_length=6)


class UserUpdate(BaseModel):
    """更新用户模型"""
    email: Optional[EmailStr] = Field(None, description="登录邮箱")
    name: Optional[str] = Field(None, description="姓名", max_length=100)
    phone: Optional[str] = Field(None, description="电话", max_length=20)
    role: Optional[UserRole] = Field(None, description="角色")
    permissions: Optional[List[str]] = Field(None, description="权限列表")
    password: Optional[str] = Field(None, description="密码", min_length=6)


class PasswordChange(BaseModel):
    """修改密码"""
    current_password: Optional[str] = Field(None, description="当前密码（已设置密码时校验）")
    new_password: str = Field(..., description="新密码", min_length=6)


class User(UserBase):
    """用户（不含密码）"""
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_serializer('created_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return format_datetime_local(dt)
