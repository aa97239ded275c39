"""
管理端路由（仅管理员）
"""
from datetime import datetime
from typing import Optional, Literal
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from staybook.database import get_db
from staybook.models.ontology import BookingStatus, UserRole
from staybook.models.schemas import UserStatusUpdate, to_naive_utc
from staybook.routers.common import ok, paginated, raise_http
from staybook.security.auth import require_admin
from staybook.services.booking_service import BookingService
from staybook.services.user_service import UserService, user_to_dict

router = APIRouter(prefix="/admin", tags=["系统管理"], dependencies=[Depends(require_admin)])


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """用户列表"""
    service = UserService(db)
    users, total = service.list_users(search, role, is_active, page, limit)
    return paginated([user_to_dict(u) for u in users], total, page, limit)


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    db: Session = Depends(get_db)
):
    """启用/停用用户"""
    service = UserService(db)
    try:
        user = service.set_status(user_id, data.is_active)
    except ValueError as e:
        raise_http(e)
    return ok(
        {"id": user.id, "email": user.email, "is_active": user.is_active},
        message="用户已启用" if user.is_active else "用户已停用",
    )


@router.get("/bookings")
def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[BookingStatus] = None,
    room_id: Optional[int] = None,
    user_id: Optional[int] = None,
    check_in: Optional[datetime] = Query(None, description="入住时间下限"),
    check_out: Optional[datetime] = Query(None, description="入住时间上限"),
    search: Optional[str] = None,
    sort_by: str = "created_at",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db)
):
    """全部预订"""
    service = BookingService(db)
    bookings, total = service.list_all_bookings(
        status=status, room_id=room_id, user_id=user_id,
        date_from=to_naive_utc(check_in), date_to=to_naive_utc(check_out), keyword=search,
        page=page, limit=limit, sort_by=sort_by, order=order,
    )
    return paginated([b.to_dict() for b in bookings], total, page, limit)
