"""
请求上下文 - 由认证依赖逐请求构建，显式传入服务层
"""
from dataclasses import dataclass
from typing import Optional

from staybook.models.ontology import UserRole


@dataclass(frozen=True)
class RequestContext:
    """
    调用方身份

    Attributes:
        user_id: 用户ID
        role: 角色（user / admin）
        email: 登录邮箱
        ip_address: 客户端IP地址
    """

    user_id: int
    role: str = UserRole.USER.value
    email: Optional[str] = None
    ip_address: Optional[str] = None

    def is_admin(self) -> bool:
        """检查是否为管理员"""
        return self.role == UserRole.ADMIN.value

    def can_access(self, owner_id: int) -> bool:
        """所有者或管理员可访问"""
        return self.is_admin() or self.user_id == owner_id

    def __repr__(self) -> str:
        return f"RequestContext(user_id={self.user_id}, role={self.role!r})"
