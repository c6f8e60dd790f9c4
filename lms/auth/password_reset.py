"""
密码重置流程
请求 -> 发送邮件 -> 兑换令牌修改密码

重置令牌不做持久化，也没有兑换记录：同一个令牌在过期前可以多次使用
"""

from .jwt_auth import JWTAuthenticator, RESET_TOKEN_TYPE
from .user_manager import UserManager
from .exceptions import UserNotFoundError, EmailDeliveryError, ValidationError
from ..logging import get_logger


logger = get_logger(__name__)


class PasswordResetService:
    """密码重置服务"""

    def __init__(
        self,
        user_manager: UserManager,
        jwt_authenticator: JWTAuthenticator,
        email_service,
        frontend_url: str
    ):
        """
        初始化密码重置服务

        Args:
            user_manager: 用户管理器
            jwt_authenticator: JWT认证器
            email_service: 邮件服务，需提供send_password_reset_email
            frontend_url: 前端地址，用于生成重置链接
        """
        self.user_manager = user_manager
        self.jwt_auth = jwt_authenticator
        self.email_service = email_service
        self.frontend_url = frontend_url.rstrip('/')

    def build_reset_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?token={token}"

    async def request_reset(self, email: str) -> str:
        """
        请求重置密码，每次调用发送一封邮件

        Args:
            email: 用户邮箱

        Returns:
            重置令牌

        Raises:
            ValidationError: 缺少邮箱
            UserNotFoundError: 邮箱未注册
            EmailDeliveryError: 邮件发送失败
        """
        if not email:
            raise ValidationError("Email is required")

        user = await self.user_manager.get_user_by_email(email)
        if not user:
            raise UserNotFoundError()

        reset_token = self.jwt_auth.create_reset_token(user)

        sent = await self.email_service.send_password_reset_email(user.email, self.build_reset_url(reset_token))
        if not sent:
            raise EmailDeliveryError(detail="Failed to send password reset email")

        logger.info("密码重置邮件已发送", extra={
            'event': 'password_reset_requested',
            'user_id': user.id
        })

        return reset_token

    async def redeem_reset(self, token: str, new_password: str) -> None:
        """
        兑换重置令牌并修改密码

        Args:
            token: 重置令牌
            new_password: 新密码

        Raises:
            ValidationError: 缺少令牌或新密码
            InvalidTokenError: 令牌无效或过期
            UserNotFoundError: 令牌对应的用户已不存在
        """
        if not token or not new_password:
            raise ValidationError("Token and new password are required")

        payload = self.jwt_auth.verify_token(token, expected_type=RESET_TOKEN_TYPE)

        user = await self.user_manager.get_user_by_id(str(payload['sub']))
        if not user:
            raise UserNotFoundError()

        user.set_password(new_password)
        await self.user_manager.save_user(user)

        logger.info("密码重置成功", extra={
            'event': 'password_reset_redeemed',
            'user_id': user.id
        })
