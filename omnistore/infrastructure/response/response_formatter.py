from typing import Any, Dict, List, Optional, Union

from omnistore.infrastructure.exceptions import (
    AuthError,
    NotSupportedError,
    ObjectNotFoundError,
    QuotaError,
    StorageError,
)


def standard_response(
    data: Optional[Union[Dict[str, Any], List[Any], str, int, float, bool]] = None,
    code: int = 200,
    msg: str = "操作成功",
) -> Dict[str, Any]:
    """
    创建标准的响应格式

    参数:
        data: 响应数据，可以是任何类型
        code: 响应状态码，默认200表示成功
        msg: 响应消息

    返回:
        Dict[str, Any]: 标准格式的响应对象
    """
    return {
        "code": code,
        "data": data,
        "msg": msg,
    }


def success_response(
    data: Optional[Union[Dict[str, Any], List[Any], str, int, float, bool]] = None,
    msg: str = "操作成功",
) -> Dict[str, Any]:
    """创建成功响应"""
    return standard_response(data=data, code=200, msg=msg)


def error_response(
    msg: str = "操作失败",
    code: int = 400,
    data: Optional[Union[Dict[str, Any], List[Any], str]] = None,
) -> Dict[str, Any]:
    """
    创建错误响应

    参数:
        msg: 错误消息
        code: 错误状态码，默认400表示客户端错误
        data: 可选的错误详情数据
    """
    return standard_response(data=data, code=code, msg=msg)


def storage_error_code(error: StorageError) -> int:
    """
    存储异常对应的响应状态码

    ObjectNotFoundError -> 404, AuthError -> 401, QuotaError -> 413,
    NotSupportedError -> 501, 其余 -> 502
    """
    if isinstance(error, ObjectNotFoundError):
        return 404
    if isinstance(error, AuthError):
        return 401
    if isinstance(error, QuotaError):
        return 413
    if isinstance(error, NotSupportedError):
        return 501
    return 502


def storage_error_response(error: StorageError) -> Dict[str, Any]:
    """将存储异常转换为标准错误响应"""
    return error_response(
        msg=error.message,
        code=storage_error_code(error),
        data={"path": error.path, "retryable": error.retryable},
    )
