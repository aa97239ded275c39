"""
房间路由
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from staybook.database import get_db
from staybook.models.ontology import RoomType, User
from staybook.models.schemas import (
    RoomCreate, RoomUpdate, RoomSearchParams, AvailabilityRequest
)
from staybook.routers.common import ok, paginated, raise_http
from staybook.security.auth import require_admin
from staybook.services.room_service import RoomService, room_to_dict

router = APIRouter(prefix="/rooms", tags=["房间管理"])


@router.get("")
def search_rooms(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    room_type: Optional[RoomType] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    adults: Optional[int] = Query(None, ge=1, le=10),
    children: Optional[int] = Query(None, ge=0, le=5),
    check_in: Optional[datetime] = None,
    check_out: Optional[datetime] = None,
    amenities: Optional[str] = Query(None, description="逗号分隔，如 wifi,tv"),
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """查询房间（可按日期筛选可用房）"""
    params = RoomSearchParams(
        page=page, limit=limit, room_type=room_type,
        min_price=min_price, max_price=max_price,
        adults=adults, children=children,
        check_in=check_in, check_out=check_out,
        amenities=[a.strip() for a in amenities.split(",") if a.strip()] if amenities else [],
        search=search,
    )
    service = RoomService(db)
    try:
        rooms, total = service.search_rooms(params)
    except ValueError as e:
        raise_http(e)
    return paginated([room_to_dict(r) for r in rooms], total, page, limit)


@router.get("/{room_id}")
def get_room(room_id: int, db: Session = Depends(get_db)):
    """获取房间详情"""
    service = RoomService(db)
    try:
        room = service.get_room_or_404(room_id)
    except ValueError as e:
        raise_http(e)
    return ok(room_to_dict(room))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """创建房间"""
    service = RoomService(db)
    try:
        room = service.create_room(data)
    except ValueError as e:
        raise_http(e)
    return ok(room_to_dict(room), message="房间已创建")


@router.put("/{room_id}")
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """更新房间"""
    service = RoomService(db)
    try:
        room = service.update_room(room_id, data)
    except ValueError as e:
        raise_http(e)
    return ok(room_to_dict(room), message="房间已更新")


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除房间（停用）"""
    service = RoomService(db)
    try:
        service.deactivate_room(room_id)
    except ValueError as e:
        raise_http(e)
    return ok(message="房间已删除")


@router.post("/{room_id}/availability")
def check_availability(
    room_id: int,
    data: AvailabilityRequest,
    db: Session = Depends(get_db)
):
    """查询房间在指定日期是否可订"""
    service = RoomService(db)
    try:
        result = service.check_availability(room_id, data.check_in, data.check_out)
    except ValueError as e:
        raise_http(e)
    return ok(**result)
