"""
预订领域错误

所有校验失败都在修改数据之前抛出；路由层按 status_code 映射为 HTTP 响应。
继承 ValueError，与服务层 `except ValueError` 的习惯保持兼容。
"""


class BookingError(ValueError):
    """领域错误基类"""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(BookingError):
    """房间或预订不存在"""
    code = "not_found"
    status_code = 404


class InvalidDateRange(BookingError):
    """离店日期不晚于入住日期，或入住日期已过"""
    code = "invalid_date_range"


class CapacityExceeded(BookingError):
    """入住人数超过房间容量"""
    code = "capacity_exceeded"


class RoomUnavailable(BookingError):
    """日期冲突或房间已停用"""
    code = "room_unavailable"
    status_code = 409


class InvalidTransition(BookingError):
    """当前状态不允许该操作"""
    code = "invalid_transition"


class NotCancellable(BookingError):
    """超出可取消时限或预订已终止"""
    code = "not_cancellable"


class Forbidden(BookingError):
    """非所有者且非管理员"""
    code = "forbidden"
    status_code = 403


class Conflict(BookingError):
    """唯一性冲突（房间号、邮箱）"""
    code = "conflict"
    status_code = 409


__all__ = [
    "BookingError",
    "NotFound",
    "InvalidDateRange",
    "CapacityExceeded",
    "RoomUnavailable",
    "InvalidTransition",
    "NotCancellable",
    "Forbidden",
    "Conflict",
]
