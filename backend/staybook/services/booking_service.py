"""
预订服务 - 预订生命周期引擎
可用性检查、定价、创建/修改/取消/支付确认/入住/退房

检查可用性并写入的操作（创建、改期、支付确认）在房间锁内执行。
所有校验在修改数据之前完成；提交失败时回滚会话。
"""
from typing import Optional, Callable, Dict, Any
from datetime import datetime
from decimal import Decimal
import logging
import threading

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from staybook.hotel.domain.booking import BookingEntity, BookingRepository
from staybook.hotel.domain.errors import Forbidden, NotFound, RoomUnavailable, InvalidDateRange
from staybook.hotel.domain.rules.booking_rules import (
    compute_pricing,
    format_booking_number,
    validate_capacity,
    validate_stay_dates,
)
from staybook.models.events import BookingEventType, BookingEventData
from staybook.models.ontology import (
    Booking, BookingSequence, BookingStatus, PaymentStatus, Room, utcnow
)
from staybook.models.schemas import BookingCreate, BookingUpdate
from staybook.security.context import RequestContext
from staybook.services.event_bus import Event, event_bus
from staybook.services.room_locks import RoomLockRegistry, room_locks
from staybook.services.user_service import UserService

logger = logging.getLogger(__name__)

# 同一进程内预订号分配串行化
_sequence_lock = threading.Lock()


class BookingService:
    """预订服务"""

    def __init__(self, db: Session,
                 event_publisher: Callable[[Event], None] = None,
                 clock: Callable[[], datetime] = None,
                 lock_registry: RoomLockRegistry = None):
        self.db = db
        # 支持依赖注入事件发布器、时钟与房间锁，便于测试
        self._publish_event = event_publisher if event_publisher is not None else event_bus.publish
        self._clock = clock if clock is not None else utcnow
        self._room_locks = lock_registry if lock_registry is not None else room_locks
        self._repo = BookingRepository(db, clock=self._clock)
        self._users = UserService(db)

    # ============== 查询 ==============

    def _get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFound("房间不存在")
        return room

    def _get_entity(self, booking_id: int) -> BookingEntity:
        entity = self._repo.get_by_id(booking_id)
        if not entity:
            raise NotFound("预订不存在")
        return entity

    @staticmethod
    def _ensure_access(entity: BookingEntity, context: Optional[RequestContext]) -> None:
        if context is not None and not context.can_access(entity.user_id):
            logger.warning(f"User {context.user_id} denied access to booking {entity.booking_number}")
            raise Forbidden("只能操作自己的预订")

    def get_booking(self, booking_id: int, context: Optional[RequestContext] = None) -> BookingEntity:
        """获取预订（所有者或管理员）"""
        entity = self._get_entity(booking_id)
        self._ensure_access(entity, context)
        return entity

    def list_user_bookings(self, user_id: int, status: Optional[BookingStatus] = None,
                           page: int = 1, limit: int = 10,
                           sort_by: str = "created_at", order: str = "desc"):
        """用户自己的预订（分页）"""
        return self._repo.find_by_user(user_id, status, page, limit, sort_by, order)

    def list_all_bookings(self, **filters):
        """管理端预订查询"""
        return self._repo.search(**filters)

    def check_availability(self, room_id: int, check_in: datetime, check_out: datetime,
                           exclude_booking_id: Optional[int] = None) -> bool:
        """
        房间在 [check_in, check_out) 是否可订

        只读查询：仅已确认、已入住的预订占用房间；同日退房/入住不冲突。
        """
        if check_out <= check_in:
            raise InvalidDateRange("离店日期必须晚于入住日期")
        room = self._get_room(room_id)
        return not self._repo.has_overlap(room.id, check_in, check_out, exclude_booking_id)

    # ============== 预订号 ==============

    def _next_booking_number(self, now: datetime) -> str:
        """按年份原子递增序号：BK + 年份 + 六位序号"""
        year = now.year
        with _sequence_lock:
            result = self.db.execute(
                update(BookingSequence)
                .where(BookingSequence.year == year)
                .values(last_value=BookingSequence.last_value + 1)
            )
            if result.rowcount == 0:
                self.db.add(BookingSequence(year=year, last_value=1))
                self.db.flush()
                sequence = 1
            else:
                sequence = self.db.execute(
                    select(BookingSequence.last_value).where(BookingSequence.year == year)
                ).scalar_one()
        return format_booking_number(year, sequence)

    # ============== 生命周期 ==============

    def create_booking(self, user_id: int, data: BookingCreate) -> BookingEntity:
        """
        创建预订（pending）

        Raises:
            InvalidDateRange: 日期无效
            NotFound: 房间或用户不存在
            RoomUnavailable: 房间停用或日期冲突
            CapacityExceeded: 人数超过房间容量
        """
        now = self._clock()
        validate_stay_dates(data.check_in, data.check_out, now)

        room = self._get_room(data.room_id)
        if not room.is_active:
            raise RoomUnavailable("该房间暂不可预订")
        if not self._users.get_user(user_id):
            raise NotFound("用户不存在")

        validate_capacity(data.guests.adults, data.guests.children,
                          room.capacity_adults, room.capacity_children)
        pricing = compute_pricing(room.price_per_night, data.check_in, data.check_out)

        with self._room_locks.hold(room.id):
            if self._repo.has_overlap(room.id, data.check_in, data.check_out):
                logger.warning(f"Room {room.room_number} unavailable for {data.check_in} - {data.check_out}")
                raise RoomUnavailable("所选日期该房间已被预订")

            try:
                booking = Booking(
                    booking_number=self._next_booking_number(now),
                    user_id=user_id,
                    room_id=room.id,
                    check_in=data.check_in,
                    check_out=data.check_out,
                    adults=data.guests.adults,
                    children=data.guests.children,
                    guest_details=data.guest_details.model_dump(mode="json"),
                    payment_method=data.payment.method,
                    payment_status=PaymentStatus.PENDING,
                    status=BookingStatus.PENDING,
                    special_requests=[r.model_dump(mode="json") for r in data.special_requests],
                    preferences=data.preferences.model_dump(mode="json") if data.preferences else {},
                    notes=data.notes.model_dump(mode="json") if data.notes else {},
                )
                entity = self._repo.add(booking)
                entity.apply_pricing(pricing)
                points = self._users.award_loyalty_points(user_id, pricing.total)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to create booking for room {room.id}: {e}", exc_info=True)
                raise

        self.db.refresh(booking)
        logger.info(
            f"Booking {booking.booking_number} created: room {room.room_number}, "
            f"total {pricing.total}, +{points} points"
        )
        self._publish(BookingEventType.BOOKING_CREATED, entity, actor_id=user_id)
        return entity

    def modify_booking(self, booking_id: int, patch: BookingUpdate,
                       context: Optional[RequestContext] = None) -> BookingEntity:
        """
        修改预订（待支付或已确认）

        改期时重新校验日期与可用性（排除自身）并按当前房价重算房费；
        改人数时重新校验容量。
        """
        entity = self._get_entity(booking_id)
        self._ensure_access(entity, context)
        entity.ensure_modifiable()

        now = self._clock()
        room = entity.model.room
        dates_changed = patch.check_in is not None or patch.check_out is not None
        new_check_in = patch.check_in or entity.check_in
        new_check_out = patch.check_out or entity.check_out

        pricing = None
        if dates_changed:
            validate_stay_dates(new_check_in, new_check_out, now)
            pricing = compute_pricing(room.price_per_night, new_check_in, new_check_out,
                                      discount=entity.discount_amount)

        adults = children = None
        if patch.guests is not None:
            adults, children = patch.guests.adults, patch.guests.children
            validate_capacity(adults, children, room.capacity_adults, room.capacity_children)

        details: Dict[str, Any] = {}
        if patch.guest_details is not None:
            details["guest_details"] = patch.guest_details.model_dump(mode="json")
        if patch.special_requests is not None:
            details["special_requests"] = [r.model_dump(mode="json") for r in patch.special_requests]
        if patch.preferences is not None:
            details["preferences"] = patch.preferences.model_dump(mode="json")
        if patch.notes is not None:
            details["notes"] = patch.notes.model_dump(mode="json")

        with self._room_locks.hold(room.id):
            if dates_changed and self._repo.has_overlap(
                    room.id, new_check_in, new_check_out, exclude_booking_id=entity.id):
                logger.warning(f"Booking {entity.booking_number}: new dates unavailable")
                raise RoomUnavailable("新日期该房间已被预订")

            try:
                entity.modify(
                    check_in=new_check_in if dates_changed else None,
                    check_out=new_check_out if dates_changed else None,
                    adults=adults,
                    children=children,
                    pricing=pricing,
                    **details,
                )
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to modify booking {entity.booking_number}: {e}", exc_info=True)
                raise

        self.db.refresh(entity.model)
        self._publish(BookingEventType.BOOKING_MODIFIED, entity,
                      actor_id=context.user_id if context else None)
        return entity

    def cancel_booking(self, booking_id: int, context: RequestContext,
                       reason: Optional[str] = None) -> dict:
        """
        取消预订

        Returns:
            {"booking", "refund_amount", "refund_status"}

        Raises:
            NotCancellable: 已终止或距入住不足 24 小时
        """
        entity = self._get_entity(booking_id)
        self._ensure_access(entity, context)

        try:
            refund, refund_status = entity.cancel(context.user_id, reason, now=self._clock())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entity.model)
        self._publish(BookingEventType.BOOKING_CANCELLED, entity, actor_id=context.user_id,
                      refund_amount=float(refund), refund_status=refund_status.value)
        return {
            "booking": entity,
            "refund_amount": refund,
            "refund_status": refund_status,
        }

    def confirm_payment(self, booking_id: int, status: PaymentStatus,
                        transaction_id: Optional[str] = None,
                        paid_amount: Optional[Decimal] = None,
                        context: Optional[RequestContext] = None) -> BookingEntity:
        """
        支付结果回写

        completed：在房间锁内再次检查房间状态与日期冲突后确认
        failed：预订取消
        """
        entity = self._get_entity(booking_id)
        self._ensure_access(entity, context)
        room = entity.model.room

        with self._room_locks.hold(room.id):
            if status == PaymentStatus.COMPLETED and entity.status == BookingStatus.PENDING.value:
                if not room.is_active:
                    raise RoomUnavailable("该房间暂不可预订")
                if self._repo.has_overlap(room.id, entity.check_in, entity.check_out,
                                          exclude_booking_id=entity.id):
                    logger.warning(f"Booking {entity.booking_number}: room taken before payment")
                    raise RoomUnavailable("所选日期该房间已被预订")

            try:
                entity.confirm_payment(status, transaction_id, paid_amount, now=self._clock())
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(entity.model)
        event_type = (
            BookingEventType.BOOKING_CONFIRMED if status == PaymentStatus.COMPLETED
            else BookingEventType.BOOKING_PAYMENT_FAILED
        )
        self._publish(event_type, entity, actor_id=context.user_id if context else None)
        return entity

    def check_in(self, booking_id: int, context: Optional[RequestContext] = None) -> BookingEntity:
        """办理入住（confirmed -> checked-in）"""
        entity = self._get_entity(booking_id)
        try:
            entity.check_in_guest(now=self._clock())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(entity.model)
        self._publish(BookingEventType.BOOKING_CHECKED_IN, entity,
                      actor_id=context.user_id if context else None)
        return entity

    def check_out(self, booking_id: int, context: Optional[RequestContext] = None) -> BookingEntity:
        """办理退房（checked-in -> checked-out）"""
        entity = self._get_entity(booking_id)
        try:
            entity.check_out_guest(now=self._clock())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(entity.model)
        self._publish(BookingEventType.BOOKING_CHECKED_OUT, entity,
                      actor_id=context.user_id if context else None)
        return entity

    # ============== 事件 ==============

    def _publish(self, event_type: BookingEventType, entity: BookingEntity,
                 actor_id: Optional[int] = None, **extra) -> None:
        data = BookingEventData(
            booking_id=entity.id,
            booking_number=entity.booking_number,
            user_id=entity.user_id,
            room_id=entity.room_id,
            status=entity.status,
            total_amount=float(entity.total_amount),
            actor_id=actor_id,
            **extra,
        )
        self._publish_event(Event(
            event_type=event_type.value,
            data=data.to_dict(),
            source="booking_service",
            timestamp=self._clock(),
        ))
