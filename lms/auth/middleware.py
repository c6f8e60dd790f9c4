"""
认证中间件
为FastAPI应用提供Bearer令牌认证
"""

from typing import Optional, Iterable, Callable

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from .jwt_auth import JWTAuthenticator
from .models import Identity
from .exceptions import AuthenticationError, MissingCredentialsError
from ..logging import get_logger, LogContext


logger = get_logger(__name__)

DEFAULT_PUBLIC_PATHS = (
    '/health',
    '/docs',
    '/redoc',
    '/openapi.json',
    '/favicon.ico',
    '/api/auth/login',
    '/api/auth/register',
    '/api/password/forgot-password',
    '/api/password/reset-password'
)


class SessionAuthenticator:
    """从Authorization头解析请求身份"""

    def __init__(self, jwt_authenticator: JWTAuthenticator):
        self.jwt_auth = jwt_authenticator

    def authenticate(self, raw_header: Optional[str]) -> Identity:
        """
        验证Authorization头

        Args:
            raw_header: Authorization头的原始值

        Returns:
            身份（用户ID + 角色）

        Raises:
            MissingCredentialsError: 缺少头
            InvalidTokenError: 头格式错误、令牌过期或签名无效
        """
        token = self.jwt_auth.extract_bearer_token(raw_header)
        return self.jwt_auth.decode_identity(token)


class AuthMiddleware(BaseHTTPMiddleware):
    """认证中间件"""

    def __init__(
        self,
        app,
        authenticator: SessionAuthenticator,
        public_paths: Iterable[str] = None
    ):
        """
        初始化认证中间件

        Args:
            app: FastAPI应用
            authenticator: 会话认证器
            public_paths: 不需要认证的路径
        """
        super().__init__(app)
        self.authenticator = authenticator
        self.public_paths = frozenset(public_paths or DEFAULT_PUBLIC_PATHS)

    def _is_public_path(self, path: str) -> bool:
        """检查路径是否为公开路径"""
        normalized = path.rstrip('/') or '/'
        return normalized in self.public_paths or normalized.startswith('/docs/')

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        中间件主处理函数

        Args:
            request: HTTP请求
            call_next: 下一个中间件或路由处理器

        Returns:
            HTTP响应
        """
        path = request.url.path

        # 跳过公开路径和预检请求
        if request.method == "OPTIONS" or self._is_public_path(path):
            return await call_next(request)

        try:
            identity = self.authenticator.authenticate(request.headers.get("Authorization"))
        except AuthenticationError as e:
            # 日志中区分过期/伪造/格式错误，客户端只看到通用消息
            logger.warning("请求认证失败", extra={
                'event': 'authentication_failed',
                'reason': e.error_code,
                'path': path,
                'method': request.method
            })
            message = e.message if isinstance(e, MissingCredentialsError) else "Invalid or expired token"
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": "UNAUTHENTICATED",
                    "message": message,
                    "request_id": LogContext.get_request_id()
                },
                headers={"WWW-Authenticate": "Bearer"}
            )

        request.state.identity = identity
        LogContext.set_user_id(identity.user_id)

        logger.debug("请求通过认证", extra={
            'event': 'request_authenticated',
            'user_id': identity.user_id,
            'role': identity.role.value,
            'path': path
        })

        return await call_next(request)


# FastAPI依赖函数
def get_current_identity(request: Request) -> Identity:
    """
    FastAPI依赖函数：获取当前请求的身份

    Args:
        request: FastAPI请求对象

    Returns:
        当前身份

    Raises:
        HTTPException: 请求未经过认证中间件
    """
    identity = getattr(request.state, 'identity', None)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return identity
