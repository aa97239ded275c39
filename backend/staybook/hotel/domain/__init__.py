"""
staybook/hotel/domain/__init__.py

预订领域层 - 领域实体、状态机、仓储与错误类型
"""
from staybook.hotel.domain.booking import BookingEntity, BookingRepository
from staybook.hotel.domain.errors import (
    BookingError,
    NotFound,
    InvalidDateRange,
    CapacityExceeded,
    RoomUnavailable,
    InvalidTransition,
    NotCancellable,
    Forbidden,
    Conflict,
)

__all__ = [
    "BookingEntity",
    "BookingRepository",
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
