"""
用户认证和授权系统
提供JWT认证、角色授权、密码重置等功能
"""

from .jwt_auth import JWTAuthenticator, ACCESS_TOKEN_TYPE, RESET_TOKEN_TYPE
from .password_manager import PasswordManager
from .user_manager import UserManager
from .password_reset import PasswordResetService
from .permissions import RoleAuthorizer, require_roles
from .middleware import AuthMiddleware, SessionAuthenticator, get_current_identity
from .models import User, UserRole, Identity, RegistrationData
from .exceptions import (
    LmsError, ConfigurationError, ValidationError, InvalidRoleError,
    AuthenticationError, MissingCredentialsError, InvalidCredentialsError,
    InvalidTokenError, TokenExpiredError, TokenSignatureError, MalformedTokenError,
    AuthorizationError, AuthorizationContractError, NotFoundError, UserNotFoundError,
    ConflictError, DuplicateEmailError, DuplicateUsernameError,
    InternalError, EmailDeliveryError
)

__all__ = [
    'JWTAuthenticator',
    'ACCESS_TOKEN_TYPE',
    'RESET_TOKEN_TYPE',
    'PasswordManager',
    'UserManager',
    'PasswordResetService',
    'RoleAuthorizer',
    'require_roles',
    'AuthMiddleware',
    'SessionAuthenticator',
    'get_current_identity',
    'User',
    'UserRole',
    'Identity',
    'RegistrationData',
    'LmsError',
    'ConfigurationError',
    'ValidationError',
    'InvalidRoleError',
    'AuthenticationError',
    'MissingCredentialsError',
    'InvalidCredentialsError',
    'InvalidTokenError',
    'TokenExpiredError',
    'TokenSignatureError',
    'MalformedTokenError',
    'AuthorizationError',
    'AuthorizationContractError',
    'NotFoundError',
    'UserNotFoundError',
    'ConflictError',
    'DuplicateEmailError',
    'DuplicateUsernameError',
    'InternalError',
    'EmailDeliveryError'
]
