"""
路由公共工具：响应包装与领域错误映射
"""
import math
from typing import Any, List, NoReturn

from fastapi import HTTPException, status

from staybook.hotel.domain.errors import BookingError


def ok(data: Any = None, message: str = None, **extra) -> dict:
    """成功响应 {"success": true, "data": ...}"""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def paginated(items: List[Any], total: int, page: int, limit: int) -> dict:
    """分页列表响应"""
    return {
        "success": True,
        "count": len(items),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "data": items,
    }


def raise_http(error: ValueError) -> NoReturn:
    """领域错误按其状态码映射；其他 ValueError 视为 400"""
    if isinstance(error, BookingError):
        raise HTTPException(status_code=error.status_code, detail=error.to_dict())
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "invalid_request", "message": str(error)}
    )
