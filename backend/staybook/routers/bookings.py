"""
预订路由
"""
from typing import Optional, Literal
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from staybook.database import get_db
from staybook.models.ontology import BookingStatus
from staybook.models.schemas import (
    BookingCreate, BookingUpdate, BookingCancel, PaymentConfirm
)
from staybook.routers.common import ok, paginated, raise_http
from staybook.security.auth import get_request_context, require_admin
from staybook.security.context import RequestContext
from staybook.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["预订管理"])


@router.get("")
def list_my_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[BookingStatus] = None,
    sort_by: str = "created_at",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """当前用户的预订列表"""
    service = BookingService(db)
    bookings, total = service.list_user_bookings(
        context.user_id, status=status, page=page, limit=limit, sort_by=sort_by, order=order
    )
    return paginated([b.to_dict() for b in bookings], total, page, limit)


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """获取预订详情（所有者或管理员）"""
    service = BookingService(db)
    try:
        booking = service.get_booking(booking_id, context)
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """创建预订"""
    service = BookingService(db)
    try:
        booking = service.create_booking(context.user_id, data)
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict(), message="预订已创建")


@router.put("/{booking_id}")
def update_booking(
    booking_id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """修改预订"""
    service = BookingService(db)
    try:
        booking = service.modify_booking(booking_id, data, context)
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict(), message="预订已更新")


@router.put("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    data: Optional[BookingCancel] = None,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """取消预订"""
    service = BookingService(db)
    try:
        result = service.cancel_booking(booking_id, context, data.reason if data else None)
    except ValueError as e:
        raise_http(e)
    return ok(
        result["booking"].to_dict(),
        message="预订已取消",
        refund_amount=float(result["refund_amount"]),
        refund_status=result["refund_status"].value,
    )


@router.put("/{booking_id}/payment")
def update_payment(
    booking_id: int,
    data: PaymentConfirm,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """支付结果回写"""
    service = BookingService(db)
    try:
        booking = service.confirm_payment(
            booking_id, data.payment_status, data.transaction_id, data.paid_amount, context
        )
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict(), message="支付状态已更新")


@router.put("/{booking_id}/checkin", dependencies=[Depends(require_admin)])
def check_in(
    booking_id: int,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """办理入住（管理员）"""
    service = BookingService(db)
    try:
        booking = service.check_in(booking_id, context)
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict(), message="入住成功")


@router.put("/{booking_id}/checkout", dependencies=[Depends(require_admin)])
def check_out(
    booking_id: int,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
):
    """办理退房（管理员）"""
    service = BookingService(db)
    try:
        booking = service.check_out(booking_id, context)
    except ValueError as e:
        raise_http(e)
    return ok(booking.to_dict(), message="退房成功")
