"""
业务实体定义
房间、用户、预订及预订号序列的 ORM 模型
"""
from datetime import datetime, UTC
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Numeric,
    JSON, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from staybook.database import Base


def utcnow() -> datetime:
    """当前 UTC 时间（naive，与数据库存储一致）"""
    return datetime.now(UTC).replace(tzinfo=None)


def _enum_column(enum_cls, **kwargs) -> Column:
    """按枚举值（而非名称）持久化，如 'checked-in'"""
    return Column(
        SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e],
                validate_strings=True),
        **kwargs
    )


# ============== 枚举定义 ==============

class RoomType(str, Enum):
    """房型"""
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"
    PRESIDENTIAL = "presidential"


class BedType(str, Enum):
    """床型"""
    SINGLE = "single"
    DOUBLE = "double"
    QUEEN = "queen"
    KING = "king"
    TWIN = "twin"


class UserRole(str, Enum):
    """用户角色"""
    USER = "user"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    """预订状态"""
    PENDING = "pending"          # 待支付
    CONFIRMED = "confirmed"      # 已确认
    CHECKED_IN = "checked-in"    # 已入住
    CHECKED_OUT = "checked-out"  # 已退房
    CANCELLED = "cancelled"      # 已取消
    NO_SHOW = "no-show"          # 未到店


class PaymentMethod(str, Enum):
    """支付方式"""
    CREDIT_CARD = "credit-card"
    DEBIT_CARD = "debit-card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank-transfer"
    CASH = "cash"
    UPI = "upi"


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially-refunded"


class RefundStatus(str, Enum):
    """退款结果"""
    NOT_APPLICABLE = "not-applicable"
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class SpecialRequestType(str, Enum):
    """特殊要求类型"""
    EARLY_CHECKIN = "early-checkin"
    LATE_CHECKOUT = "late-checkout"
    ROOM_PREFERENCE = "room-preference"
    DIETARY = "dietary"
    ACCESSIBILITY = "accessibility"
    OTHER = "other"


class FloorPreference(str, Enum):
    LOW = "low"
    MIDDLE = "middle"
    HIGH = "high"
    NO_PREFERENCE = "no-preference"


# ============== 实体定义 ==============

class User(Base):
    """
    用户对象 - 预订的所有者
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(120), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = _enum_column(UserRole, default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    loyalty_points = Column(Integer, default=0, nullable=False)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")


class Room(Base):
    """
    房间对象
    is_active 为软删除标记，停用的房间不可预订
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)
    room_type = _enum_column(RoomType, nullable=False)
    description = Column(Text, nullable=False)
    price_per_night = Column(Numeric(12, 2), nullable=False)
    capacity_adults = Column(Integer, nullable=False, default=1)
    capacity_children = Column(Integer, nullable=False, default=0)
    bed_type = _enum_column(BedType, nullable=False, default=BedType.SINGLE)
    floor = Column(Integer, nullable=False)
    amenities = Column(JSON, default=list)
    smoking_allowed = Column(Boolean, default=False)
    pet_friendly = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="room")

    __table_args__ = (
        Index("ix_rooms_type_active", "room_type", "is_active"),
        Index("ix_rooms_price", "price_per_night"),
    )

    @property
    def total_capacity(self) -> int:
        return (self.capacity_adults or 0) + (self.capacity_children or 0)


class Booking(Base):
    """
    预订对象 - 预订生命周期的聚合根
    定价字段全部由房价与日期推导，不单独维护
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    check_in = Column(DateTime, nullable=False)
    check_out = Column(DateTime, nullable=False)

    # 入住人数
    adults = Column(Integer, nullable=False, default=1)
    children = Column(Integer, nullable=False, default=0)
    guest_details = Column(JSON, nullable=False)      # {primary_guest, additional_guests}

    # 定价
    room_rate = Column(Numeric(12, 2), nullable=False)
    nights = Column(Integer, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    taxes = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_reason = Column(String(200))
    total_amount = Column(Numeric(12, 2), nullable=False)

    # 支付
    payment_method = _enum_column(PaymentMethod, nullable=False)
    payment_status = _enum_column(PaymentStatus, nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String(100))
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_date = Column(DateTime)
    refund_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refund_date = Column(DateTime)

    status = _enum_column(BookingStatus, nullable=False, default=BookingStatus.PENDING)
    special_requests = Column(JSON, default=list)
    preferences = Column(JSON, default=dict)
    notes = Column(JSON, default=dict)
    check_in_time = Column(DateTime)
    check_out_time = Column(DateTime)

    # 取消信息
    is_cancelled = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(DateTime)
    cancelled_by = Column(Integer, ForeignKey("users.id"))
    cancellation_reason = Column(String(500))
    refund_status = _enum_column(RefundStatus, nullable=False, default=RefundStatus.NOT_APPLICABLE)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="bookings", foreign_keys=[user_id])
    room = relationship("Room", back_populates="bookings")

    __table_args__ = (
        Index("ix_bookings_user_created", "user_id", "created_at"),
        Index("ix_bookings_room_dates", "room_id", "check_in", "check_out"),
        Index("ix_bookings_status_check_in", "status", "check_in"),
    )


class BookingSequence(Base):
    """
    预订号序列 - 每年一行，原子递增
    """
    __tablename__ = "booking_sequences"

    year = Column(Integer, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
