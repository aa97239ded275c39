"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator

from staybook.models.ontology import (
    RoomType, BedType, UserRole, PaymentMethod,
    PaymentStatus, SpecialRequestType, FloorPreference
)

PHONE_PATTERN = r"^\d{10}$"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间统一转换为 naive UTC；naive 时间视为 UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


class _StayDates(BaseModel):
    """入住/离店时间的公共校验"""

    @field_validator("check_in", "check_out", mode="after", check_fields=False)
    @classmethod
    def normalize_datetime(cls, v):
        return to_naive_utc(v)


# ============== 认证 Schemas ==============

class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str = Field(..., pattern=PHONE_PATTERN)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("姓名至少 2 个字符")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    role: UserRole
    is_active: bool
    loyalty_points: int
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserStatusUpdate(BaseModel):
    is_active: bool


# ============== 房间 Schemas ==============

class RoomCapacity(BaseModel):
    adults: int = Field(..., ge=1, le=10)
    children: int = Field(default=0, ge=0, le=5)


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=10)
    room_type: RoomType
    description: str = Field(..., min_length=10, max_length=1000)
    price_per_night: Decimal = Field(..., ge=0)
    capacity: RoomCapacity
    bed_type: BedType
    floor: int = Field(..., ge=1, le=50)
    amenities: List[str] = Field(default_factory=list)
    smoking_allowed: bool = False
    pet_friendly: bool = False

    @field_validator("room_number")
    @classmethod
    def strip_room_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("房间号不能为空")
        return v


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=10)
    room_type: Optional[RoomType] = None
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    price_per_night: Optional[Decimal] = Field(None, ge=0)
    capacity: Optional[RoomCapacity] = None
    bed_type: Optional[BedType] = None
    floor: Optional[int] = Field(None, ge=1, le=50)
    amenities: Optional[List[str]] = None
    smoking_allowed: Optional[bool] = None
    pet_friendly: Optional[bool] = None
    is_active: Optional[bool] = None


class RoomSearchParams(_StayDates):
    """房间搜索条件"""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=12, ge=1, le=100)
    room_type: Optional[RoomType] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    adults: Optional[int] = Field(None, ge=1, le=10)
    children: Optional[int] = Field(None, ge=0, le=5)
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    amenities: List[str] = Field(default_factory=list)
    search: Optional[str] = None


class AvailabilityRequest(_StayDates):
    check_in: datetime
    check_out: datetime


# ============== 预订 Schemas ==============

class GuestCount(BaseModel):
    adults: int = Field(..., ge=1, le=10)
    children: int = Field(default=0, ge=0, le=5)


class PrimaryGuest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)

    @field_validator("first_name", "last_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("客人姓名不能为空")
        return v


class AdditionalGuest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    age: Optional[int] = Field(None, ge=0, le=120)


class GuestDetails(BaseModel):
    primary_guest: PrimaryGuest
    additional_guests: List[AdditionalGuest] = Field(default_factory=list)


class SpecialRequest(BaseModel):
    type: SpecialRequestType
    description: Optional[str] = Field(None, max_length=500)
    fulfilled: bool = False


class Preferences(BaseModel):
    smoking_room: bool = False
    floor_preference: FloorPreference = FloorPreference.NO_PREFERENCE
    bed_preference: Optional[BedType] = None


class BookingNotes(BaseModel):
    customer_notes: Optional[str] = Field(None, max_length=1000)
    admin_notes: Optional[str] = Field(None, max_length=1000)
    housekeeping_notes: Optional[str] = Field(None, max_length=1000)


class PaymentInfo(BaseModel):
    method: PaymentMethod


class BookingCreate(_StayDates):
    room_id: int
    check_in: datetime
    check_out: datetime
    guests: GuestCount
    guest_details: GuestDetails
    payment: PaymentInfo
    special_requests: List[SpecialRequest] = Field(default_factory=list)
    preferences: Optional[Preferences] = None
    notes: Optional[BookingNotes] = None


class BookingUpdate(_StayDates):
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    guests: Optional[GuestCount] = None
    guest_details: Optional[GuestDetails] = None
    special_requests: Optional[List[SpecialRequest]] = None
    preferences: Optional[Preferences] = None
    notes: Optional[BookingNotes] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentConfirm(BaseModel):
    status: Literal["completed", "failed"]
    transaction_id: Optional[str] = Field(None, min_length=1, max_length=100)
    paid_amount: Optional[Decimal] = Field(None, ge=0)

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus(self.status)

