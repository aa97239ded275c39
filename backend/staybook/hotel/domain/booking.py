"""
staybook/hotel/domain/booking.py

Booking 领域实体 - 预订生命周期状态机
封装 ORM 模型，所有状态变更都经过状态机校验
"""
from typing import Optional, List, Set, Tuple, Callable, Dict, Any
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition
from staybook.hotel.domain.errors import InvalidTransition, NotCancellable
from staybook.hotel.domain.rules.booking_rules import (
    BLOCKING_STATUSES,
    PricingBreakdown,
    is_before_cancellation_deadline,
    refund_for,
    refund_status_for,
    to_amount,
)
from staybook.models.ontology import (
    Booking, BookingStatus, PaymentStatus, RefundStatus, Room, User, utcnow
)

logger = logging.getLogger(__name__)


# ============== 状态机配置 ==============

_TERMINAL_STATES = frozenset({
    BookingStatus.CHECKED_OUT.value,
    BookingStatus.CANCELLED.value,
    BookingStatus.NO_SHOW.value,
})


def _before_deadline(context: Dict[str, Any]) -> bool:
    return bool(context.get("before_deadline"))


def _create_booking_state_machine(initial_status: str) -> StateMachine:
    """创建预订状态机"""
    pending = BookingStatus.PENDING.value
    confirmed = BookingStatus.CONFIRMED.value
    checked_in = BookingStatus.CHECKED_IN.value
    checked_out = BookingStatus.CHECKED_OUT.value
    cancelled = BookingStatus.CANCELLED.value

    return StateMachine(
        config=StateMachineConfig(
            name="Booking",
            states=[s.value for s in BookingStatus],
            transitions=[
                StateTransition(pending, confirmed, "confirm_payment"),
                StateTransition(pending, cancelled, "payment_failed"),
                StateTransition(pending, cancelled, "cancel", condition=_before_deadline),
                StateTransition(confirmed, cancelled, "cancel", condition=_before_deadline),
                StateTransition(confirmed, checked_in, "check_in"),
                StateTransition(checked_in, checked_out, "check_out"),
                # 修改日期/人数不改变状态
                StateTransition(pending, pending, "modify"),
                StateTransition(confirmed, confirmed, "modify"),
            ],
            initial_state=initial_status,
            terminal_states=_TERMINAL_STATES,
        )
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============== Booking 领域实体 ==============

class BookingEntity:
    """
    Booking 领域实体

    Attributes:
        _orm_model: 内部 ORM 模型实例
        _state_machine: 状态机实例
        _clock: 当前时间提供者（便于测试注入）
    """

    def __init__(self, orm_model: Booking, clock: Optional[Callable[[], datetime]] = None):
        self._orm_model = orm_model
        self._clock = clock if clock is not None else utcnow
        initial_status = orm_model.status.value if orm_model.status else BookingStatus.PENDING.value
        self._state_machine = _create_booking_state_machine(initial_status)

    # ============== 属性访问 ==============

    @property
    def model(self) -> Booking:
        """底层 ORM 模型"""
        return self._orm_model

    @property
    def id(self) -> int:
        return self._orm_model.id

    @property
    def booking_number(self) -> str:
        return self._orm_model.booking_number

    @property
    def user_id(self) -> int:
        return self._orm_model.user_id

    @property
    def room_id(self) -> int:
        return self._orm_model.room_id

    @property
    def check_in(self) -> datetime:
        return self._orm_model.check_in

    @property
    def check_out(self) -> datetime:
        return self._orm_model.check_out

    @property
    def adults(self) -> int:
        return self._orm_model.adults or 1

    @property
    def children(self) -> int:
        return self._orm_model.children or 0

    @property
    def total_guests(self) -> int:
        return self.adults + self.children

    @property
    def status(self) -> str:
        """当前状态"""
        return self._state_machine.current_state

    @property
    def total_amount(self) -> Decimal:
        return to_amount(self._orm_model.total_amount or 0)

    @property
    def discount_amount(self) -> Decimal:
        return to_amount(self._orm_model.discount_amount or 0)

    @property
    def pricing(self) -> PricingBreakdown:
        """已保存的房费明细"""
        m = self._orm_model
        return PricingBreakdown(
            room_rate=to_amount(m.room_rate or 0),
            nights=m.nights or 0,
            subtotal=to_amount(m.subtotal or 0),
            taxes=to_amount(m.taxes or 0),
            discount=self.discount_amount,
            total=self.total_amount,
        )

    @property
    def history(self):
        """本实体生命周期内的状态转换记录"""
        return self._state_machine.get_history()

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    def _set_status(self, new_state: str) -> None:
        self._orm_model.status = BookingStatus(new_state)

    # ============== 查询方法 ==============

    def is_blocking(self) -> bool:
        """是否占用房间（阻止其他预订）"""
        return self.status in {s.value for s in BLOCKING_STATUSES}

    def is_terminal(self) -> bool:
        return self._state_machine.is_terminal()

    def can_modify(self) -> bool:
        """入住、退房、取消后不可修改日期/人数"""
        return self._state_machine.can_fire("modify")

    def can_be_cancelled(self, now: Optional[datetime] = None) -> bool:
        """
        是否可以取消

        已取消、已退房等状态不可取消；入住前 24 小时内不可取消。
        """
        before_deadline = is_before_cancellation_deadline(self.check_in, self._now(now))
        return self._state_machine.can_fire("cancel", {"before_deadline": before_deadline})

    def calculate_refund(self, now: Optional[datetime] = None) -> Decimal:
        """按退款档位计算退款金额；不可取消时为 0"""
        current = self._now(now)
        if not self.can_be_cancelled(current):
            return Decimal("0.00")
        return refund_for(self.total_amount, self.check_in, current)

    # ============== 业务方法 ==============

    def ensure_modifiable(self) -> None:
        if not self.can_modify():
            raise InvalidTransition(f"状态为 {self.status} 的预订不可修改")

    def apply_pricing(self, pricing: PricingBreakdown) -> None:
        """写入重新计算的房费明细"""
        m = self._orm_model
        m.room_rate = pricing.room_rate
        m.nights = pricing.nights
        m.subtotal = pricing.subtotal
        m.taxes = pricing.taxes
        m.discount_amount = pricing.discount
        m.total_amount = pricing.total

    def modify(self, check_in: Optional[datetime] = None, check_out: Optional[datetime] = None,
               adults: Optional[int] = None, children: Optional[int] = None,
               pricing: Optional[PricingBreakdown] = None, **details: Any) -> None:
        """
        修改预订（日期、人数、客人信息等），状态不变

        调用方负责在此之前完成可用性与容量校验。

        Raises:
            InvalidTransition: 当前状态不允许修改
        """
        self.ensure_modifiable()
        m = self._orm_model
        if check_in is not None:
            m.check_in = check_in
        if check_out is not None:
            m.check_out = check_out
        if adults is not None:
            m.adults = adults
        if children is not None:
            m.children = children
        if pricing is not None:
            self.apply_pricing(pricing)
        for key in ("guest_details", "special_requests", "preferences", "notes"):
            if details.get(key) is not None:
                setattr(m, key, details[key])
        self._state_machine.fire("modify")
        logger.info(f"Booking {self.booking_number} modified")

    def confirm_payment(self, status: PaymentStatus, transaction_id: Optional[str] = None,
                        paid_amount: Optional[Decimal] = None,
                        now: Optional[datetime] = None) -> None:
        """
        支付结果回写

        completed: pending -> confirmed
            未给出 paid_amount（或为 0）时记为预订总价
        failed: pending -> cancelled

        Raises:
            InvalidTransition: 预订不在待支付状态
        """
        if status not in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
            raise ValueError("支付状态只能为 completed 或 failed")

        trigger = "confirm_payment" if status == PaymentStatus.COMPLETED else "payment_failed"
        if not self._state_machine.can_fire(trigger):
            raise InvalidTransition(f"状态为 {self.status} 的预订不能更新支付结果")

        current = self._now(now)
        m = self._orm_model
        m.payment_status = status
        m.payment_date = current
        if transaction_id:
            m.transaction_id = transaction_id

        if status == PaymentStatus.COMPLETED:
            m.paid_amount = to_amount(paid_amount) if paid_amount else self.total_amount
        else:
            if paid_amount is not None:
                m.paid_amount = to_amount(paid_amount)
            m.is_cancelled = True
            m.cancelled_at = current
            m.cancellation_reason = "Payment failed"
            m.refund_status = RefundStatus.NOT_APPLICABLE

        self._set_status(self._state_machine.fire(trigger))
        logger.info(f"Booking {self.booking_number} payment {status.value}")

    def cancel(self, actor_id: int, reason: Optional[str] = None,
               now: Optional[datetime] = None) -> Tuple[Decimal, RefundStatus]:
        """
        取消预订

        Args:
            actor_id: 操作人
            reason: 取消原因

        Returns:
            (退款金额, 退款结果)

        Raises:
            NotCancellable: 已终止或进入入住前 24 小时
        """
        current = self._now(now)
        if not self.can_be_cancelled(current):
            raise NotCancellable(
                "预订不可取消（已取消、已退房或距入住不足 24 小时）"
            )

        refund = refund_for(self.total_amount, self.check_in, current)
        refund_status = refund_status_for(refund, self.total_amount)

        new_state = self._state_machine.fire("cancel", {"before_deadline": True})
        m = self._orm_model
        m.is_cancelled = True
        m.cancelled_at = current
        m.cancelled_by = actor_id
        m.cancellation_reason = reason or "Cancelled by customer"
        m.refund_status = refund_status

        if refund > 0:
            m.refund_amount = refund
            m.refund_date = current
            if m.payment_status == PaymentStatus.COMPLETED:
                m.payment_status = (
                    PaymentStatus.REFUNDED if refund_status == RefundStatus.FULL
                    else PaymentStatus.PARTIALLY_REFUNDED
                )

        self._set_status(new_state)
        logger.info(
            f"Booking {self.booking_number} cancelled by {actor_id}: refund {refund} ({refund_status.value})"
        )
        return refund, refund_status

    def check_in_guest(self, now: Optional[datetime] = None) -> None:
        """办理入住：仅已确认的预订"""
        if not self._state_machine.can_fire("check_in"):
            raise InvalidTransition("只有已确认的预订可以办理入住")
        self._orm_model.check_in_time = self._now(now)
        self._set_status(self._state_machine.fire("check_in"))

    def check_out_guest(self, now: Optional[datetime] = None) -> None:
        """办理退房：仅已入住的预订"""
        if not self._state_machine.can_fire("check_out"):
            raise InvalidTransition("只有已入住的预订可以办理退房")
        self._orm_model.check_out_time = self._now(now)
        self._set_status(self._state_machine.fire("check_out"))

    # ============== 序列化 ==============

    def to_dict(self) -> dict:
        """转换为字典"""
        m = self._orm_model
        room = m.room
        return {
            "id": self.id,
            "booking_number": self.booking_number,
            "user_id": self.user_id,
            "room": {
                "id": room.id,
                "room_number": room.room_number,
                "room_type": room.room_type.value,
                "price_per_night": float(room.price_per_night),
            } if room is not None else {"id": self.room_id},
            "check_in": _iso(self.check_in),
            "check_out": _iso(self.check_out),
            "guests": {"adults": self.adults, "children": self.children},
            "total_guests": self.total_guests,
            "duration": m.nights,
            "guest_details": m.guest_details,
            "pricing": {
                **self.pricing.to_dict(),
                "discount_reason": m.discount_reason,
            },
            "payment": {
                "method": m.payment_method.value if m.payment_method else None,
                "status": m.payment_status.value if m.payment_status else None,
                "transaction_id": m.transaction_id,
                "paid_amount": float(m.paid_amount or 0),
                "payment_date": _iso(m.payment_date),
                "refund_amount": float(m.refund_amount or 0),
                "refund_date": _iso(m.refund_date),
            },
            "status": self.status,
            "special_requests": m.special_requests or [],
            "preferences": m.preferences or {},
            "notes": m.notes or {},
            "check_in_time": _iso(m.check_in_time),
            "check_out_time": _iso(m.check_out_time),
            "cancellation": {
                "is_cancelled": bool(m.is_cancelled),
                "cancelled_at": _iso(m.cancelled_at),
                "cancelled_by": m.cancelled_by,
                "reason": m.cancellation_reason,
                "refund_status": m.refund_status.value if m.refund_status else None,
            },
            "created_at": _iso(m.created_at),
            "updated_at": _iso(m.updated_at),
        }


# ============== Booking 仓储 ==============

class BookingRepository:
    """Booking 仓储"""

    def __init__(self, db_session: Session, clock: Optional[Callable[[], datetime]] = None):
        self._db = db_session
        self._clock = clock

    def _wrap(self, orm_model: Optional[Booking]) -> Optional[BookingEntity]:
        if orm_model is None:
            return None
        return BookingEntity(orm_model, clock=self._clock)

    def get_by_id(self, booking_id: int) -> Optional[BookingEntity]:
        """根据 ID 获取预订"""
        return self._wrap(self._db.query(Booking).filter(Booking.id == booking_id).first())

    def get_by_number(self, booking_number: str) -> Optional[BookingEntity]:
        """根据预订号获取预订"""
        return self._wrap(
            self._db.query(Booking).filter(Booking.booking_number == booking_number).first()
        )

    def find_overlapping(self, room_id: int, check_in: datetime, check_out: datetime,
                         exclude_booking_id: Optional[int] = None) -> List[Booking]:
        """
        查找与 [check_in, check_out) 重叠且占用房间的预订

        仅 confirmed / checked-in 状态参与比较；修改时排除自身。
        """
        query = self._db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.all()

    def has_overlap(self, room_id: int, check_in: datetime, check_out: datetime,
                    exclude_booking_id: Optional[int] = None) -> bool:
        return bool(self.find_overlapping(room_id, check_in, check_out, exclude_booking_id))

    def blocked_room_ids(self, check_in: datetime, check_out: datetime) -> Set[int]:
        """[check_in, check_out) 内被占用的房间 ID"""
        rows = self._db.query(Booking.room_id).filter(
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        ).distinct().all()
        return {row[0] for row in rows}

    def find_active_for_room(self, room_id: int, after: datetime) -> List[Booking]:
        """房间尚未结束的占用预订"""
        return self._db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.check_out >= after,
        ).all()

    def find_by_user(self, user_id: int, status: Optional[BookingStatus] = None,
                     page: int = 1, limit: int = 10,
                     sort_by: str = "created_at", order: str = "desc") -> Tuple[List[BookingEntity], int]:
        """分页查询用户的预订"""
        query = self._db.query(Booking).filter(Booking.user_id == user_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        return self._paginate(query, page, limit, sort_by, order)

    def search(self, status: Optional[BookingStatus] = None, room_id: Optional[int] = None,
               user_id: Optional[int] = None, date_from: Optional[datetime] = None,
               date_to: Optional[datetime] = None, keyword: Optional[str] = None,
               page: int = 1, limit: int = 10,
               sort_by: str = "created_at", order: str = "desc") -> Tuple[List[BookingEntity], int]:
        """管理端预订查询"""
        query = self._db.query(Booking)
        if status is not None:
            query = query.filter(Booking.status == status)
        if room_id is not None:
            query = query.filter(Booking.room_id == room_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if date_from is not None:
            query = query.filter(Booking.check_in >= date_from)
        if date_to is not None:
            query = query.filter(Booking.check_in <= date_to)
        if keyword:
            # 预订号、下单用户姓名/邮箱、房间号
            pattern = f"%{keyword}%"
            user_ids = select(User.id).where(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            ))
            room_ids = select(Room.id).where(Room.room_number.ilike(pattern))
            query = query.filter(or_(
                Booking.booking_number.ilike(pattern),
                Booking.user_id.in_(user_ids),
                Booking.room_id.in_(room_ids),
            ))
        return self._paginate(query, page, limit, sort_by, order)

    def _paginate(self, query, page: int, limit: int,
                  sort_by: str, order: str) -> Tuple[List[BookingEntity], int]:
        column = getattr(Booking, sort_by, None)
        if column is None or sort_by not in _SORTABLE_COLUMNS:
            column = Booking.created_at
        total = query.count()
        query = query.order_by(column.desc() if order == "desc" else column.asc(), Booking.id.desc())
        rows = query.offset((page - 1) * limit).limit(limit).all()
        return [self._wrap(r) for r in rows], total

    def add(self, orm_model: Booking) -> BookingEntity:
        """加入会话（不提交）"""
        self._db.add(orm_model)
        return self._wrap(orm_model)


_SORTABLE_COLUMNS = {"created_at", "check_in", "check_out", "total_amount", "status"}


# 导出
__all__ = [
    "BookingEntity",
    "BookingRepository",
]
