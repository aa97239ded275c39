"""
认证路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from staybook.database import get_db
from staybook.models.ontology import User
from staybook.models.schemas import (
    UserRegister, LoginRequest, ProfileUpdate, PasswordChange
)
from staybook.routers.common import ok, raise_http
from staybook.security.auth import get_current_user
from staybook.services.user_service import UserService, user_to_dict

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, db: Session = Depends(get_db)):
    """用户注册"""
    service = UserService(db)
    try:
        user, token = service.register(data)
    except ValueError as e:
        raise_http(e)
    return ok(message="注册成功", token=token, user=user_to_dict(user))


@router.post("/login")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    service = UserService(db)
    try:
        result = service.authenticate(data.email, data.password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="邮箱或密码错误"
        )
    return ok(message="登录成功", **result)


@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return ok(user_to_dict(current_user))


@router.put("/profile")
def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """更新个人资料"""
    service = UserService(db)
    try:
        user = service.update_profile(current_user.id, data)
    except ValueError as e:
        raise_http(e)
    return ok(user_to_dict(user), message="资料已更新")


@router.put("/change-password")
def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """修改密码"""
    service = UserService(db)
    try:
        service.change_password(current_user.id, data)
    except ValueError as e:
        raise_http(e)
    return ok(message="密码修改成功")


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    """退出登录（token 由客户端丢弃）"""
    return ok(message="已退出登录")
