"""
角色授权
路由声明允许的角色集合，按角色精确匹配，不存在角色层级
"""

from typing import Iterable, Optional, FrozenSet

from fastapi import Request

from .models import Identity, UserRole
from .exceptions import AuthorizationError, AuthorizationContractError
from ..logging import get_logger


logger = get_logger(__name__)


class RoleAuthorizer:
    """角色授权器"""

    def authorize(self, identity: Optional[Identity], allowed_roles: Iterable[UserRole]) -> None:
        """
        检查身份的角色是否在允许集合中

        admin不会自动满足instructor等其他角色的要求

        Args:
            identity: 认证中间件解析出的身份
            allowed_roles: 路由允许的角色

        Raises:
            AuthorizationContractError: 身份缺失（授权在认证之前执行）
            AuthorizationError: 角色不被允许
        """
        if identity is None:
            raise AuthorizationContractError("authorize() called before the request was authenticated")

        allowed = frozenset(UserRole.parse(role) for role in allowed_roles)
        if identity.role not in allowed:
            logger.warning("角色授权失败", extra={
                'event': 'permission_denied',
                'user_id': identity.user_id,
                'role': identity.role.value,
                'allowed_roles': sorted(role.value for role in allowed)
            })
            raise AuthorizationError()


def require_roles(*roles: UserRole):
    """
    角色检查依赖工厂

    Args:
        roles: 允许的角色

    Returns:
        FastAPI依赖函数，返回通过检查的身份
    """
    allowed: FrozenSet[UserRole] = frozenset(UserRole.parse(role) for role in roles)
    authorizer = RoleAuthorizer()

    def check_roles(request: Request) -> Identity:
        identity = getattr(request.state, 'identity', None)
        authorizer.authorize(identity, allowed)
        return identity

    return check_roles
