from fastapi import APIRouter

from omnistore.api.v1.endpoints import storage


api_router = APIRouter()

# 包含各模块的路由

api_router.include_router(storage.router, prefix="/storage", tags=["对象存储"])
