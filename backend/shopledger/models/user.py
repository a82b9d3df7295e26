"""
用户模型
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from shopledger.db.database import Base


class User(Base):
    """用户表"""
    __tablename__ = "app_users"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True, comment="登录邮箱")
    name = Column(String(100), nullable=False, comment="姓名")
    phone = Column(String(20), comment="电话")
    role = Column(String(20), nullable=False, default="STAFF", comment="角色：ADMIN=管理员, STAFF=员工")
    permissions = Column(Text, comment="权限列表（JSON数组，仅对员工生效）")
    password_hash = Column(String(255), comment="密码哈希")
    created_at = Column(DateTime, server_default=func.now(), nullable=False, comment="创建时间")
