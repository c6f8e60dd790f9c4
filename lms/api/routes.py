"""
认证和密码重置路由
组件从app.state获取，由create_app在启动时装配
"""

from fastapi import APIRouter, Depends, Query, Request, status

from ..auth import (
    Identity, UserRole, RegistrationData, require_roles, get_current_identity,
    LmsError, InternalError, InvalidTokenError, UserNotFoundError
)
from ..logging import get_logger, LogContext
from .models import (
    LoginRequest, RegisterRequest, ForgotPasswordRequest,
    ResetPasswordRequest, UpdateProfileRequest
)


logger = get_logger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
password_router = APIRouter(prefix="/api/password", tags=["password"])


@auth_router.post("/login")
async def login(body: LoginRequest, request: Request):
    """用户登录"""
    state = request.app.state
    with LogContext(operation="user_login"):
        try:
            user = await state.user_manager.authenticate_user(body.email, body.password)
            token = state.jwt_authenticator.create_access_token(user)

            logger.info("用户登录成功", extra={
                'event': 'user_login_success',
                'user_id': user.id,
                'role': user.role.value
            })

            return {'token': token, 'user': user.to_public_dict()}

        except LmsError as e:
            logger.warning("用户登录失败", extra={
                'event': 'user_login_failed',
                'error_code': e.error_code
            })
            raise
        except Exception as e:
            logger.error("用户登录错误", extra={
                'event': 'user_login_error',
                'error': str(e)
            }, exc_info=True)
            raise InternalError("Login failed", detail=str(e))


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, request: Request):
    """用户注册"""
    state = request.app.state
    with LogContext(operation="user_registration"):
        try:
            user = await state.user_manager.register_user(RegistrationData(
                email=body.email,
                password=body.password,
                first_name=body.first_name,
                last_name=body.last_name,
                role=body.role,
                username=body.username,
                phone_number=body.phone_number,
                portfolio_url=body.portfolio_url,
                bio=body.bio,
                skills=body.skills
            ))
            token = state.jwt_authenticator.create_access_token(user)

            return {'token': token, 'user': user.to_public_dict()}

        except LmsError as e:
            logger.warning("用户注册失败", extra={
                'event': 'user_registration_failed',
                'error_code': e.error_code
            })
            raise
        except Exception as e:
            logger.error("用户注册失败：系统错误", extra={
                'event': 'user_registration_error',
                'error': str(e)
            }, exc_info=True)
            raise InternalError("Registration failed", detail=str(e))


@auth_router.get("/me")
async def get_me(request: Request, identity: Identity = Depends(get_current_identity)):
    """获取当前用户信息"""
    user = await request.app.state.user_manager.get_user_by_id(identity.user_id)
    if not user:
        raise UserNotFoundError()
    return {'user': user.to_public_dict()}


@auth_router.patch("/me")
async def update_me(
    body: UpdateProfileRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity)
):
    """更新当前用户资料"""
    with LogContext(operation="update_profile", user_id=identity.user_id):
        user = await request.app.state.user_manager.update_profile(identity.user_id, body.changes())

        logger.info("用户资料已更新", extra={
            'event': 'profile_updated',
            'fields': sorted(body.changes())
        })

        return {'user': user.to_public_dict()}


@auth_router.get("/users")
async def list_users(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    identity: Identity = Depends(require_roles(UserRole.ADMIN))
):
    """获取用户列表（仅admin）"""
    users = await request.app.state.user_manager.list_users(skip=skip, limit=limit)
    return {'users': [user.to_public_dict() for user in users]}


@password_router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, request: Request):
    """请求密码重置邮件"""
    with LogContext(operation="password_reset_request"):
        try:
            await request.app.state.password_reset.request_reset(body.email)
            return {'message': "Password reset email sent"}

        except LmsError as e:
            logger.warning("密码重置请求失败", extra={
                'event': 'password_reset_request_failed',
                'error_code': e.error_code
            })
            raise
        except Exception as e:
            logger.error("密码重置请求错误", extra={
                'event': 'password_reset_request_error',
                'error': str(e)
            }, exc_info=True)
            raise InternalError("Password reset request failed", detail=str(e))


@password_router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, request: Request):
    """使用重置令牌修改密码"""
    with LogContext(operation="password_reset"):
        try:
            await request.app.state.password_reset.redeem_reset(body.token, body.new_password)
            return {'message': "Password reset successful"}

        except (InvalidTokenError, UserNotFoundError) as e:
            # 令牌无效和用户不存在都按重置失败处理
            logger.warning("密码重置失败", extra={
                'event': 'password_reset_failed',
                'error_code': e.error_code
            })
            raise InternalError("Password reset failed", detail="Invalid or expired token")
        except LmsError as e:
            logger.warning("密码重置失败", extra={
                'event': 'password_reset_failed',
                'error_code': e.error_code
            })
            raise
        except Exception as e:
            logger.error("密码重置错误", extra={
                'event': 'password_reset_error',
                'error': str(e)
            }, exc_info=True)
            raise InternalError("Password reset failed", detail=str(e))
