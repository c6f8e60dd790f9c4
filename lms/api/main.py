"""
LMS后端主程序
装配认证、授权和密码重置组件，提供REST API
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..auth import (
    JWTAuthenticator, PasswordManager, UserManager, PasswordResetService,
    AuthMiddleware, SessionAuthenticator, LmsError, ConfigurationError
)
from ..config import Settings, get_settings
from ..database import AsyncMongoDBClient
from ..logging import setup_logging, get_logger, LogContext
from ..logging.middleware import FastAPILoggingMiddleware
from ..mail import EmailService
from .routes import auth_router, password_router


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database=None,
    email_service=None
) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        settings: 配置，默认从环境变量加载
        database: 已连接的Motor数据库，为None时在启动时根据配置连接
        email_service: 邮件服务，默认使用SMTP配置创建

    Returns:
        FastAPI应用

    Raises:
        ConfigurationError: 缺少必需配置
    """
    settings = settings or get_settings()
    jwt_authenticator = JWTAuthenticator.from_settings(settings.jwt)
    email_service = email_service or EmailService.from_settings(settings.email)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        setup_logging(
            settings.service_name,
            log_level=settings.log.level,
            log_file=settings.log.file,
            max_size_mb=settings.log.max_size,
            backup_count=settings.log.backup_count
        )
        logger.info("LMS后端启动", extra={
            'event': 'service_startup',
            'environment': settings.environment
        })

        mongo_client = None
        db = database
        if db is None:
            mongo_client = AsyncMongoDBClient.from_settings(settings.mongo)
            if not await mongo_client.connect():
                raise ConfigurationError("Unable to connect to MongoDB")
            db = mongo_client.db

        user_manager = UserManager(db, PasswordManager(rounds=settings.bcrypt_rounds))
        await user_manager.ensure_indexes()

        app.state.settings = settings
        app.state.jwt_authenticator = jwt_authenticator
        app.state.user_manager = user_manager
        app.state.email_service = email_service
        app.state.password_reset = PasswordResetService(
            user_manager,
            jwt_authenticator,
            email_service,
            settings.frontend_url
        )

        logger.info("LMS后端初始化完成", extra={'event': 'service_initialized'})

        yield

        logger.info("LMS后端关闭", extra={'event': 'service_shutdown'})
        if mongo_client is not None:
            await mongo_client.disconnect()

    app = FastAPI(
        title="LMS Backend",
        description="学习管理系统认证和授权服务",
        version=__version__,
        lifespan=lifespan
    )

    # 后添加的中间件在外层：CORS -> 日志(请求ID) -> 认证
    app.add_middleware(AuthMiddleware, authenticator=SessionAuthenticator(jwt_authenticator))
    app.add_middleware(FastAPILoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(password_router)

    @app.get("/health")
    async def health_check():
        """健康检查"""
        return {
            'status': 'healthy',
            'service': settings.service_name,
            'version': __version__,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    @app.exception_handler(LmsError)
    async def lms_exception_handler(request: Request, exc: LmsError):
        """业务异常处理器"""
        content = {
            'error': exc.error_code,
            'message': exc.message,
            'request_id': LogContext.get_request_id()
        }
        if exc.status_code >= 500:
            content['detail'] = exc.detail
            logger.error("请求处理失败", extra={
                'event': 'internal_error',
                'error_code': exc.error_code,
                'detail': exc.detail,
                'path': request.url.path
            })

        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """请求体格式错误"""
        logger.warning("请求参数无效", extra={
            'event': 'request_validation_failed',
            'path': request.url.path,
            'errors': len(exc.errors())
        })
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                'error': 'VALIDATION_ERROR',
                'message': "Invalid request body",
                'request_id': LogContext.get_request_id()
            }
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """未处理异常，由最外层的ServerErrorMiddleware调用"""
        request_id = getattr(request.state, 'request_id', None) or request.headers.get('X-Request-ID')
        logger.error("未处理的异常", extra={
            'event': 'unhandled_exception',
            'request_id': request_id,
            'error_type': type(exc).__name__,
            'path': request.url.path
        }, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                'error': 'INTERNAL_ERROR',
                'message': "Something went wrong!",
                'detail': str(exc),
                'request_id': request_id
            },
            headers={'X-Request-ID': request_id} if request_id else None
        )

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings.service_name, log_level=settings.log.level)

    logger.info("启动LMS后端", extra={
        'event': 'service_startup_initiated',
        'host': settings.host,
        'port': settings.port
    })

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log.level.lower(),
        reload=False
    )
