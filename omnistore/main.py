from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import sys

from omnistore.api.dependencies import get_storage
from omnistore.api.v1.api import api_router
from omnistore.core.config import settings
from omnistore.infrastructure.exceptions import StorageError
from omnistore.infrastructure.response import error_response, standard_response, storage_error_response

# 降低watchfiles日志级别，避免频繁输出
logging.getLogger('watchfiles').setLevel(logging.ERROR)
logging.getLogger('watchfiles.main').setLevel(logging.ERROR)

# 配置日志
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description="OmniStore 统一对象存储API"
)

# 配置CORS - 重要: 必须在其他中间件之前添加
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"]
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """存储异常统一转换为标准响应，错误信息在code字段中表示"""
    logger.error(f"❌ 存储操作失败 {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(content=storage_error_response(exc), status_code=200)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """非法路径等参数错误"""
    logger.warning(f"请求参数错误 {request.method} {request.url.path}: {exc}")
    return JSONResponse(content=error_response(msg=str(exc), code=400), status_code=200)


# 包含API路由
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.on_event("shutdown")
def close_storage():
    """
    应用关闭时释放存储客户端(Synology 会话会被登出)
    """
    if get_storage.cache_info().currsize:
        logger.info("正在关闭存储客户端...")
        get_storage().close()
        get_storage.cache_clear()


@app.get("/")
async def root():
    """健康检查接口"""
    return standard_response(
        data={
            "status": "online",
            "version": "0.1.0",
            "provider": settings.STORAGE_PROVIDER,
        },
        msg="OmniStore API服务正在运行"
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("omnistore.main:app", host=settings.HOST, port=settings.PORT, reload=settings.RELOAD)
