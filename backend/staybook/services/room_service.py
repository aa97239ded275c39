"""
房间服务 - 房间目录
房间查询（含按日期筛选可用房）、房间增改、软删除
"""
from typing import List, Optional, Tuple, Callable
from datetime import datetime
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from staybook.hotel.domain.booking import BookingRepository
from staybook.hotel.domain.errors import Conflict, NotFound, InvalidDateRange
from staybook.hotel.domain.rules.booking_rules import (
    compute_pricing, validate_stay_dates
)
from staybook.models.ontology import Room, RoomType, utcnow
from staybook.models.schemas import RoomCreate, RoomUpdate, RoomSearchParams

logger = logging.getLogger(__name__)


def room_to_dict(room: Room) -> dict:
    """房间对外信息"""
    return {
        "id": room.id,
        "room_number": room.room_number,
        "room_type": room.room_type.value,
        "description": room.description,
        "price_per_night": float(room.price_per_night),
        "capacity": {
            "adults": room.capacity_adults,
            "children": room.capacity_children,
        },
        "total_capacity": room.total_capacity,
        "bed_type": room.bed_type.value,
        "floor": room.floor,
        "amenities": room.amenities or [],
        "smoking_allowed": bool(room.smoking_allowed),
        "pet_friendly": bool(room.pet_friendly),
        "is_active": room.is_active,
        "created_at": room.created_at.isoformat() if room.created_at else None,
        "updated_at": room.updated_at.isoformat() if room.updated_at else None,
    }


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._clock = clock if clock is not None else utcnow
        self._bookings = BookingRepository(db, clock=self._clock)

    def get_room(self, room_id: int) -> Optional[Room]:
        """获取单个房间"""
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_room_or_404(self, room_id: int) -> Room:
        room = self.get_room(room_id)
        if not room:
            raise NotFound("房间不存在")
        return room

    def get_room_by_number(self, room_number: str) -> Optional[Room]:
        return self.db.query(Room).filter(Room.room_number == room_number).first()

    def search_rooms(self, params: RoomSearchParams) -> Tuple[List[Room], int]:
        """
        查询在用房间

        给出入住/离店时间时只返回该时段无占用预订的房间。
        amenities 要求房间包含全部指定设施。

        Returns:
            (当前页房间, 总数)
        """
        query = self.db.query(Room).filter(Room.is_active.is_(True))

        if params.room_type:
            query = query.filter(Room.room_type == params.room_type)
        if params.min_price is not None:
            query = query.filter(Room.price_per_night >= params.min_price)
        if params.max_price is not None:
            query = query.filter(Room.price_per_night <= params.max_price)
        if params.adults is not None:
            query = query.filter(Room.capacity_adults >= params.adults)
        if params.children is not None:
            query = query.filter(Room.capacity_children >= params.children)
        if params.search:
            pattern = f"%{params.search}%"
            matching_types = [t for t in RoomType if params.search.lower() in t.value]
            conditions = [
                Room.room_number.ilike(pattern),
                Room.description.ilike(pattern),
            ]
            if matching_types:
                conditions.append(Room.room_type.in_(matching_types))
            query = query.filter(or_(*conditions))

        query = query.order_by(Room.created_at.desc(), Room.id.desc())

        has_dates = params.check_in is not None and params.check_out is not None
        if has_dates and params.check_out <= params.check_in:
            raise InvalidDateRange("离店日期必须晚于入住日期")

        if not has_dates and not params.amenities:
            total = query.count()
            rooms = query.offset((params.page - 1) * params.limit).limit(params.limit).all()
            return rooms, total

        # 设施和可用性在内存中过滤后再分页
        rooms = query.all()
        if params.amenities:
            wanted = set(params.amenities)
            rooms = [r for r in rooms if wanted.issubset(set(r.amenities or []))]
        if has_dates:
            blocked = self._bookings.blocked_room_ids(params.check_in, params.check_out)
            rooms = [r for r in rooms if r.id not in blocked]

        start = (params.page - 1) * params.limit
        return rooms[start:start + params.limit], len(rooms)

    def check_availability(self, room_id: int, check_in: datetime, check_out: datetime) -> dict:
        """
        单个房间的可用性与报价

        Raises:
            InvalidDateRange: 日期无效
            NotFound: 房间不存在
        """
        validate_stay_dates(check_in, check_out, self._clock())
        room = self.get_room_or_404(room_id)
        available = room.is_active and not self._bookings.has_overlap(room.id, check_in, check_out)
        pricing = compute_pricing(room.price_per_night, check_in, check_out)
        return {
            "available": bool(available),
            "room": {
                "id": room.id,
                "room_number": room.room_number,
                "room_type": room.room_type.value,
                "price_per_night": float(room.price_per_night),
            },
            "dates": {
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "nights": pricing.nights,
            },
            "pricing": pricing.to_dict(),
        }

    def create_room(self, data: RoomCreate) -> Room:
        """创建房间"""
        if self.get_room_by_number(data.room_number):
            raise Conflict(f"房间号 '{data.room_number}' 已存在")

        room = Room(
            room_number=data.room_number,
            room_type=data.room_type,
            description=data.description.strip(),
            price_per_night=data.price_per_night,
            capacity_adults=data.capacity.adults,
            capacity_children=data.capacity.children,
            bed_type=data.bed_type,
            floor=data.floor,
            amenities=list(data.amenities),
            smoking_allowed=data.smoking_allowed,
            pet_friendly=data.pet_friendly,
            is_active=True,
        )
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room {room.room_number} created")
        return room

    def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        """更新房间"""
        room = self.get_room_or_404(room_id)

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("room_number"):
            existing = self.get_room_by_number(update_data["room_number"])
            if existing and existing.id != room_id:
                raise Conflict(f"房间号 '{update_data['room_number']}' 已存在")

        capacity = update_data.pop("capacity", None)
        if capacity:
            room.capacity_adults = capacity["adults"]
            room.capacity_children = capacity.get("children", 0)

        for key, value in update_data.items():
            if value is not None:
                setattr(room, key, value)

        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room {room.room_number} updated")
        return room

    def deactivate_room(self, room_id: int) -> Room:
        """
        软删除房间

        仍有未结束的已确认/已入住预订时拒绝删除
        """
        room = self.get_room_or_404(room_id)
        if self._bookings.find_active_for_room(room.id, self._clock()):
            logger.warning(f"Refused to delete room {room.room_number}: active bookings")
            raise ValueError("房间存在未结束的预订，不能删除")

        room.is_active = False
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room {room.room_number} deactivated")
        return room
