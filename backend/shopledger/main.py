"""
FastAPI主应用入口
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shopledger.core.config import APP_NAME, APP_VERSION, CORS_ORIGINS, LOG_LEVEL
from shopledger.core.errors import (
    ConsoleError, NotFoundError, PermissionDeniedError, StoreError, ValidationError,
)
from shopledger.db.database import SessionLocal, engine
from shopledger.db.init_db import init_db
from shopledger.services.console import Console
from shopledger.services.gateway import StoreGateway

# 配置日志
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_console() -> Console:
    """创建协调器并加载数据；未配置数据库时使用示例数据"""
    if engine is not None:
        init_db(engine)
    else:
        logger.warning("未配置 DATABASE_URL，使用示例数据，修改不会保存")
    console = Console(StoreGateway(SessionLocal))
    console.load()
    return console


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 测试时可以预先设置 app.state.console
    if getattr(app.state, "console", None) is None:
        app.state.console = build_console()
    yield


# 创建FastAPI应用
app = FastAPI(
    title=APP_NAME,
    description="销售、库存、客户和供货商管理系统后端API",
    version=APP_VERSION,
    lifespan=lifespan,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(PermissionDeniedError)
async def permission_exception_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    logger.error(f"数据库错误: {exc.message}")
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(ConsoleError)
async def console_exception_handler(request: Request, exc: ConsoleError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


# 全局异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器，确保所有错误都返回CORS头"""
    error_detail = str(exc)
    logger.error(f"未处理的异常: {error_detail}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"内部服务器错误: {error_detail}",
        },
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "*",
            "Access-Control-Allow-Headers": "*",
        }
    )


@app.get("/")
async def root():
    """根路径"""
    return {"message": APP_NAME, "version": APP_VERSION}


@app.get("/health")
async def health(request: Request):
    """健康检查"""
    console = getattr(request.app.state, "console", None)
    configured = bool(console and console.gateway.configured)
    return {"status": "ok", "store": "database" if configured else "sample"}


# 注册API路由
from shopledger.api import (  # noqa: E402
    customer_ranks, customers, export, inventory, orders, products, promotions,
    reports, suppliers, users,
)
app.include_router(products.router)
app.include_router(customers.router)
app.include_router(customer_ranks.router)
app.include_router(suppliers.router)
app.include_router(orders.router)
app.include_router(inventory.router)
app.include_router(reports.router)
app.include_router(users.router)
app.include_router(promotions.router)
app.include_router(export.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("shopledger.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
