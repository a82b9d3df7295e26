"""
数据库配置和连接
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from shopledger.core.config import DATABASE_URL, SQL_ECHO


def make_engine(url: str):
    """创建数据库引擎"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # SQLite需要这个参数
    return create_engine(url, connect_args=connect_args, echo=SQL_ECHO)


# 未配置数据库时不创建引擎，网关会退回示例数据
engine = make_engine(DATABASE_URL) if DATABASE_URL else None

# 创建会话工厂
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None

# 创建基础模型类
Base = declarative_base()

