"""
对象存储API接口模块

通过HTTP暴露存储适配器的七个操作: 获取端点、列出对象、下载、上传、删除、获取访问URL。
存储异常由 main.py 中注册的异常处理器统一转换为标准响应。
"""
import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse

from omnistore.api.dependencies import get_storage
from omnistore.infrastructure.response import success_response
from omnistore.infrastructure.storage.object_storage import ObjectStorageInterface
from omnistore.infrastructure.storage.object_storage.content_type import DEFAULT_CONTENT_TYPE, guess_by_extension
from omnistore.infrastructure.storage.object_storage.materializer import close_stream

# 配置日志记录器
logger = logging.getLogger(__name__)

# 创建API路由实例
router = APIRouter()

# 流式下载的分块大小
STREAM_CHUNK_SIZE = 64 * 1024


def _iter_stream(stream):
    try:
        while True:
            chunk = stream.read(STREAM_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        close_stream(stream)


@router.get("/endpoint")
def get_endpoint(storage: ObjectStorageInterface = Depends(get_storage)):
    """获取当前存储提供方的基础端点"""
    return success_response(data={
        "provider": storage.provider_name,
        "endpoint": storage.get_endpoint(),
    })


@router.get("/objects")
def list_objects(
        prefix: str = "",  # 对象路径前缀，为空时列出全部
        storage: ObjectStorageInterface = Depends(get_storage),
):
    """
    列出前缀下的全部对象

    Returns:
        dict: {"code": 200, "msg": "...", "data": {"items": [...], "total": int}}
    """
    objects = storage.list(prefix)
    return success_response(data={
        "items": [obj.to_dict() for obj in objects],
        "total": len(objects),
    })


@router.get("/objects/{path:path}")
def download_object(path: str, storage: ObjectStorageInterface = Depends(get_storage)):
    """以流的方式下载对象内容"""
    stream = storage.get_stream(path)
    key = storage.to_relative_path(path)
    media_type = guess_by_extension(key) or DEFAULT_CONTENT_TYPE
    return StreamingResponse(_iter_stream(stream), media_type=media_type)


@router.put("/objects/{path:path}")
def upload_object(
        path: str,
        file: UploadFile = File(...),  # 上传的文件内容
        storage: ObjectStorageInterface = Depends(get_storage),
):
    """上传对象，已存在时覆盖"""
    obj = storage.put(path, file.file)
    logger.info(f"✅ 接口上传完成: {obj.path} ({obj.size}字节)")
    return success_response(data=obj.to_dict(), msg="上传成功")


@router.delete("/objects/{path:path}")
def delete_object(path: str, storage: ObjectStorageInterface = Depends(get_storage)):
    """删除对象"""
    storage.delete(path)
    return success_response(data={"path": storage.to_relative_path(path)}, msg="删除成功")


@router.get("/urls/{path:path}")
def get_object_url(path: str, storage: ObjectStorageInterface = Depends(get_storage)):
    """获取对象的公开或预签名访问URL"""
    return success_response(data={
        "path": storage.to_relative_path(path),
        "url": storage.get_url(path),
    })
