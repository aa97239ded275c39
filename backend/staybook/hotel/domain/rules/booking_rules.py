"""
staybook/hotel/domain/rules/booking_rules.py

预订规则 - 纯函数，无数据库依赖

- 日期区间重叠判定（半开区间，允许同日退房/入住衔接）
- 房费计算（晚数、小计、18% 税费、折扣、总价）
- 取消时限与退款档位
- 入住人数容量校验
- 预订号格式
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from staybook.hotel.domain.errors import InvalidDateRange, CapacityExceeded
from staybook.models.ontology import BookingStatus, RefundStatus

Amount = Union[Decimal, int, float, str]

# 固定税率（政策常量，不按预订配置）
TAX_RATE = Decimal("0.18")

# 取消政策
CANCELLATION_DEADLINE_HOURS = 24
FULL_REFUND_HOURS = 72
PARTIAL_REFUND_RATIO = Decimal("0.5")

# 占用房间的状态：只有这些状态会阻止其他预订
BLOCKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)

_CENT = Decimal("0.01")
_SECONDS_PER_DAY = 24 * 60 * 60


def to_amount(value: Amount) -> Decimal:
    """转换为两位小数的金额"""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


# ============== 可用性 ==============

def intervals_overlap(a_start: datetime, a_end: datetime,
                      b_start: datetime, b_end: datetime) -> bool:
    """
    半开区间 [a_start, a_end) 与 [b_start, b_end) 是否重叠

    一方的离店时间等于另一方的入住时间不算重叠。
    """
    return a_start < b_end and b_start < a_end


# ============== 定价 ==============

@dataclass(frozen=True)
class PricingBreakdown:
    """房费明细"""
    room_rate: Decimal
    nights: int
    subtotal: Decimal
    taxes: Decimal
    discount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "room_rate": float(self.room_rate),
            "nights": self.nights,
            "subtotal": float(self.subtotal),
            "taxes": float(self.taxes),
            "discount": float(self.discount),
            "total": float(self.total),
        }


def count_nights(check_in: datetime, check_out: datetime) -> int:
    """住宿晚数，不足一天按一天计"""
    if check_out <= check_in:
        raise InvalidDateRange("离店日期必须晚于入住日期")
    return math.ceil((check_out - check_in).total_seconds() / _SECONDS_PER_DAY)


def compute_pricing(room_rate: Amount,
                    check_in: Optional[datetime] = None,
                    check_out: Optional[datetime] = None,
                    nights: Optional[int] = None,
                    discount: Amount = 0) -> PricingBreakdown:
    """
    计算房费明细

    可直接给出 nights，或给出入住/离店日期由其推导。

    Raises:
        InvalidDateRange: 日期无效或晚数小于 1
        ValueError: 折扣为负或超过应付金额
    """
    if nights is None:
        if check_in is None or check_out is None:
            raise ValueError("需要提供 nights 或入住/离店日期")
        nights = count_nights(check_in, check_out)
    if nights < 1:
        raise InvalidDateRange("住宿晚数至少为 1")

    rate = to_amount(room_rate)
    if rate < 0:
        raise ValueError("房价不能为负")
    discount_amount = to_amount(discount)
    if discount_amount < 0:
        raise ValueError("折扣不能为负")

    subtotal = to_amount(rate * nights)
    taxes = to_amount(subtotal * TAX_RATE)
    total = subtotal + taxes - discount_amount
    if total < 0:
        raise ValueError("折扣不能超过应付金额")

    return PricingBreakdown(
        room_rate=rate,
        nights=nights,
        subtotal=subtotal,
        taxes=taxes,
        discount=discount_amount,
        total=to_amount(total),
    )


# ============== 取消与退款 ==============

def hours_until(check_in: datetime, now: datetime) -> float:
    """距入住还有多少小时（已过则为负）"""
    return (check_in - now).total_seconds() / 3600


def is_before_cancellation_deadline(check_in: datetime, now: datetime) -> bool:
    """入住前 24 小时之前才允许取消"""
    return hours_until(check_in, now) > CANCELLATION_DEADLINE_HOURS


def refund_for(total: Amount, check_in: datetime, now: datetime) -> Decimal:
    """
    按距入住时间计算退款金额

    - 超过 72 小时：全额
    - 24 ~ 72 小时：50%
    - 24 小时以内：0（取消时限已拦截此档）
    """
    total_amount = to_amount(total)
    hours = hours_until(check_in, now)
    if hours > FULL_REFUND_HOURS:
        return total_amount
    if hours > CANCELLATION_DEADLINE_HOURS:
        return to_amount(total_amount * PARTIAL_REFUND_RATIO)
    return Decimal("0.00")


def refund_status_for(refund: Amount, total: Amount) -> RefundStatus:
    """退款金额与总价比较得出退款结果"""
    refund_amount = to_amount(refund)
    if refund_amount == to_amount(total):
        return RefundStatus.FULL
    if refund_amount > 0:
        return RefundStatus.PARTIAL
    return RefundStatus.NONE


# ============== 校验 ==============

def validate_stay_dates(check_in: datetime, check_out: datetime, now: datetime) -> None:
    """离店晚于入住，且入住日期不早于今天"""
    if check_out <= check_in:
        raise InvalidDateRange("离店日期必须晚于入住日期")
    if check_in.date() < now.date():
        raise InvalidDateRange("入住日期不能早于今天")


def validate_capacity(adults: int, children: int,
                      capacity_adults: int, capacity_children: int) -> None:
    """成人数不超过房间成人容量，总人数不超过房间总容量"""
    total_capacity = capacity_adults + capacity_children
    if adults > capacity_adults:
        raise CapacityExceeded(f"该房间最多可入住 {capacity_adults} 位成人")
    if adults + children > total_capacity:
        raise CapacityExceeded(f"该房间最多可入住 {total_capacity} 位客人")


# ============== 预订号 ==============

def format_booking_number(year: int, sequence: int) -> str:
    """预订号：BK + 四位年份 + 六位序号"""
    return f"BK{year:04d}{sequence:06d}"


__all__ = [
    "TAX_RATE",
    "CANCELLATION_DEADLINE_HOURS",
    "FULL_REFUND_HOURS",
    "PARTIAL_REFUND_RATIO",
    "BLOCKING_STATUSES",
    "PricingBreakdown",
    "to_amount",
    "intervals_overlap",
    "count_nights",
    "compute_pricing",
    "hours_until",
    "is_before_cancellation_deadline",
    "refund_for",
    "refund_status_for",
    "validate_stay_dates",
    "validate_capacity",
    "format_booking_number",
]
