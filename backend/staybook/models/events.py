"""
领域事件定义
预订生命周期中发布的事件类型与事件数据
"""
from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any


class BookingEventType(str, Enum):
    """预订事件类型"""
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_PAYMENT_FAILED = "booking.payment_failed"
    BOOKING_MODIFIED = "booking.modified"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_CHECKED_IN = "booking.checked_in"
    BOOKING_CHECKED_OUT = "booking.checked_out"


@dataclass
class BookingEventData:
    """预订事件数据"""
    booking_id: int
    booking_number: str
    user_id: int
    room_id: int
    status: str
    total_amount: float = 0.0
    actor_id: Optional[int] = None
    refund_amount: Optional[float] = None
    refund_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
