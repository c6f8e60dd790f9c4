"""
JWT认证管理器
提供访问令牌和密码重置令牌的签发与验证
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from .exceptions import (
    ConfigurationError, MissingCredentialsError, TokenExpiredError,
    TokenSignatureError, MalformedTokenError
)
from .models import User, Identity, UserRole

ACCESS_TOKEN_TYPE = "access"
RESET_TOKEN_TYPE = "reset"


class JWTAuthenticator:
    """JWT认证器"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_hours: int = 24,
        reset_token_expire_minutes: int = 60,
        issuer: str = "lms-backend"
    ):
        """
        初始化JWT认证器

        Args:
            secret_key: JWT签名密钥，为空时拒绝启动
            algorithm: 签名算法
            access_token_expire_hours: 访问令牌过期时间（小时）
            reset_token_expire_minutes: 重置令牌过期时间（分钟）
            issuer: 令牌发行者

        Raises:
            ConfigurationError: 缺少签名密钥
        """
        if not secret_key:
            raise ConfigurationError("JWT secret is not configured")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = timedelta(hours=access_token_expire_hours)
        self.reset_token_ttl = timedelta(minutes=reset_token_expire_minutes)
        self.issuer = issuer

    @classmethod
    def from_settings(cls, jwt_settings) -> "JWTAuthenticator":
        """从JWTSettings创建认证器"""
        return cls(
            secret_key=jwt_settings.secret,
            algorithm=jwt_settings.algorithm,
            access_token_expire_hours=jwt_settings.access_token_expire_hours,
            reset_token_expire_minutes=jwt_settings.reset_token_expire_minutes,
            issuer=jwt_settings.issuer
        )

    def issue_token(
        self,
        claims: Dict[str, Any],
        ttl: timedelta,
        issued_at: Optional[datetime] = None
    ) -> str:
        """
        签发令牌

        Args:
            claims: 令牌声明
            ttl: 有效期
            issued_at: 签发时间，默认当前时间

        Returns:
            JWT令牌
        """
        now = issued_at or datetime.now(timezone.utc)

        payload = dict(claims)
        payload.update({
            'iat': now,  # 签发时间
            'exp': now + ttl,  # 过期时间
            'iss': self.issuer  # 发行者
        })

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_access_token(self, user: User) -> str:
        """
        创建访问令牌

        Args:
            user: 已持久化的用户对象

        Returns:
            JWT访问令牌
        """
        return self.issue_token(
            {'sub': user.id, 'role': user.role.value, 'type': ACCESS_TOKEN_TYPE},
            self.access_token_ttl
        )

    def create_reset_token(self, user: User) -> str:
        """
        创建密码重置令牌

        Args:
            user: 已持久化的用户对象

        Returns:
            JWT重置令牌
        """
        return self.issue_token(
            {'sub': user.id, 'type': RESET_TOKEN_TYPE},
            self.reset_token_ttl
        )

    def verify_token(self, token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        """
        验证JWT令牌

        Args:
            token: JWT令牌
            expected_type: 期望的令牌类型（access/reset），为None时不检查

        Returns:
            解码后的payload

        Raises:
            TokenExpiredError: 令牌过期
            TokenSignatureError: 签名无效
            MalformedTokenError: 格式、发行者、类型或声明无效
        """
        if not token:
            raise MalformedTokenError()

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={'require': ['exp', 'iat', 'sub']}
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidSignatureError:
            raise TokenSignatureError()
        except jwt.InvalidTokenError:
            raise MalformedTokenError()

        if expected_type is not None and payload.get('type') != expected_type:
            raise MalformedTokenError()

        return payload

    def decode_identity(self, token: str) -> Identity:
        """
        验证访问令牌并解析身份

        Args:
            token: JWT访问令牌

        Returns:
            身份（用户ID + 角色）

        Raises:
            InvalidTokenError: 令牌无效或角色不在枚举中
        """
        payload = self.verify_token(token, expected_type=ACCESS_TOKEN_TYPE)

        try:
            role = UserRole.parse(payload.get('role'))
        except ValueError:
            raise MalformedTokenError()

        return Identity(user_id=str(payload['sub']), role=role)

    @staticmethod
    def extract_bearer_token(authorization_header: Optional[str]) -> str:
        """
        从Authorization头中提取Bearer令牌

        Args:
            authorization_header: Authorization头的值

        Returns:
            JWT令牌

        Raises:
            MissingCredentialsError: 缺少头
            MalformedTokenError: 头格式无效
        """
        if not authorization_header:
            raise MissingCredentialsError()

        parts = authorization_header.split()
        if len(parts) != 2 or parts[0].lower() != 'bearer':
            raise MalformedTokenError()

        return parts[1]
