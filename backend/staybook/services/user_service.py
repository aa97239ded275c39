"""
用户服务 - 注册、登录、个人资料、管理端用户维护
"""
from typing import List, Optional, Tuple
from decimal import Decimal
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from staybook.hotel.domain.errors import Conflict, NotFound
from staybook.models.ontology import User, UserRole, utcnow
from staybook.models.schemas import UserRegister, ProfileUpdate, PasswordChange
from staybook.security.auth import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)

# 每消费 100 元积 1 分
POINTS_PER_AMOUNT = 100


def user_to_dict(user: User) -> dict:
    """用户对外信息（不含密码）"""
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": f"{user.first_name} {user.last_name}",
        "email": user.email,
        "phone": user.phone,
        "role": user.role.value,
        "is_active": user.is_active,
        "loyalty_points": user.loyalty_points or 0,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def register(self, data: UserRegister, role: UserRole = UserRole.USER) -> Tuple[User, str]:
        """注册新用户，返回 (用户, token)"""
        email = data.email.strip().lower()
        if self.get_by_email(email):
            raise Conflict("该邮箱已注册")

        user = User(
            first_name=data.first_name,
            last_name=data.last_name,
            email=email,
            phone=data.phone,
            password_hash=get_password_hash(data.password),
            role=role,
            is_active=True,
            loyalty_points=0,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} registered")
        return user, create_access_token(user.id, user.role)

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        """
        登录认证

        Returns:
            {"token", "user"}；邮箱或密码错误时返回 None

        Raises:
            ValueError: 账号已停用
        """
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            return None

        if not user.is_active:
            raise ValueError("账号已停用，请联系客服")

        user.last_login = utcnow()
        self.db.commit()
        self.db.refresh(user)
        return {
            "token": create_access_token(user.id, user.role),
            "user": user_to_dict(user),
        }

    def update_profile(self, user_id: int, data: ProfileUpdate) -> User:
        """更新姓名、电话（邮箱与角色不可改）"""
        user = self.get_user(user_id)
        if not user:
            raise NotFound("用户不存在")

        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, key, value.strip() if isinstance(value, str) else value)

        self.db.commit()
        self.db.refresh(user)
        return user

    def change_password(self, user_id: int, data: PasswordChange) -> None:
        user = self.get_user(user_id)
        if not user:
            raise NotFound("用户不存在")
        if not verify_password(data.current_password, user.password_hash):
            raise ValueError("当前密码错误")

        user.password_hash = get_password_hash(data.new_password)
        self.db.commit()
        logger.info(f"User {user_id} changed password")

    def list_users(self, search: Optional[str] = None, role: Optional[UserRole] = None,
                   is_active: Optional[bool] = None,
                   page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
        """管理端用户列表"""
        query = self.db.query(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            ))
        if role is not None:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()
        users = query.order_by(User.created_at.desc(), User.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        return users, total

    def set_status(self, user_id: int, is_active: bool) -> User:
        """启用/停用用户，管理员账号不可停用"""
        user = self.get_user(user_id)
        if not user:
            raise NotFound("用户不存在")
        if user.role == UserRole.ADMIN and not is_active:
            raise ValueError("不能停用管理员账号")

        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return user

    def award_loyalty_points(self, user_id: int, total_amount: Decimal) -> int:
        """
        按消费金额累计积分（不提交，随调用方事务一起提交）

        Returns:
            本次累计的积分
        """
        points = int(Decimal(total_amount) // POINTS_PER_AMOUNT)
        if points <= 0:
            return 0
        user = self.get_user(user_id)
        if not user:
            raise NotFound("用户不存在")
        user.loyalty_points = (user.loyalty_points or 0) + points
        return points
