"""
staybook/hotel/domain/rules/ - 预订业务规则模块

提供预订引擎使用的纯规则函数，包括：
- 日期区间重叠判定
- 房费与税费计算
- 取消时限与退款档位
"""
from staybook.hotel.domain.rules.booking_rules import (
    TAX_RATE,
    BLOCKING_STATUSES,
    PricingBreakdown,
    intervals_overlap,
    count_nights,
    compute_pricing,
    is_before_cancellation_deadline,
    refund_for,
    refund_status_for,
    validate_stay_dates,
    validate_capacity,
    format_booking_number,
)

__all__ = [
    "TAX_RATE",
    "BLOCKING_STATUSES",
    "PricingBreakdown",
    "intervals_overlap",
    "count_nights",
    "compute_pricing",
    "is_before_cancellation_deadline",
    "refund_for",
    "refund_status_for",
    "validate_stay_dates",
    "validate_capacity",
    "format_booking_number",
]
