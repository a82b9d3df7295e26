"""
应用配置
从 .env 和环境变量读取
"""
import os
import logging
from pathlib import Path
from datetime import timezone, timedelta
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# 查找 .env 文件（backend 目录或项目根目录）
_BACKEND_DIR = Path(__file__).parent.parent.parent
for env_path in (_BACKEND_DIR / ".env", _BACKEND_DIR.parent / ".env"):
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        logger.info(f"已加载环境变量文件: {env_path}")
        break

APP_NAME = os.getenv("APP_NAME", "销售库存管理系统API")
APP_VERSION = "1.0.0"

# 数据库连接，留空表示未配置数据库，此时使用示例数据
DATABASE_URL = os.getenv("DATABASE_URL", "")
SQL_ECHO = os.getenv("SQL_ECHO", "False").lower() == "true"

# 启动时是否向空数据库写入示例数据
SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "False").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# 业务所在时区（小时），带时区的时间统一转换为该时区的本地时间存储
LOCAL_UTC_OFFSET = int(os.getenv("LOCAL_UTC_OFFSET", "8"))
LOCAL_TZ = timezone(timedelta(hours=LOCAL_UTC_OFFSET))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

