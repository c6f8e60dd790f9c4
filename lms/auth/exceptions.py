"""
认证和授权异常类
每个异常携带HTTP状态码和错误代码，错误代码用于日志区分
"""


class LmsError(Exception):
    """业务异常基础类"""

    status_code: int = 500

    def __init__(self, message: str, error_code: str = None, detail: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.detail = detail


class ConfigurationError(Exception):
    """启动配置错误（不是请求级错误）"""


class ValidationError(LmsError):
    """请求字段缺失或格式错误"""

    status_code = 400

    def __init__(self, message: str = "Invalid request", error_code: str = "VALIDATION_ERROR"):
        super().__init__(message, error_code)


class InvalidRoleError(ValidationError):
    """角色不在允许的枚举中"""

    def __init__(self, message: str = "Invalid role specified", error_code: str = "INVALID_ROLE"):
        super().__init__(message, error_code)


class AuthenticationError(LmsError):
    """身份认证异常"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", error_code: str = "AUTH_FAILED"):
        super().__init__(message, error_code)


class MissingCredentialsError(AuthenticationError):
    """缺少Authorization头"""

    def __init__(self, message: str = "Authentication required", error_code: str = "MISSING_AUTHORIZATION"):
        super().__init__(message, error_code)


class InvalidCredentialsError(AuthenticationError):
    """无效凭据异常"""

    def __init__(self, message: str = "Invalid credentials", error_code: str = "INVALID_CREDENTIALS"):
        super().__init__(message, error_code)


class InvalidTokenError(AuthenticationError):
    """无效令牌异常，下面三个子类只在日志中区分"""

    def __init__(self, message: str = "Invalid or expired token", error_code: str = "INVALID_TOKEN"):
        super().__init__(message, error_code)


class TokenExpiredError(InvalidTokenError):
    """令牌过期异常"""

    def __init__(self, message: str = "Invalid or expired token", error_code: str = "TOKEN_EXPIRED"):
        super().__init__(message, error_code)


class TokenSignatureError(InvalidTokenError):
    """令牌签名不匹配"""

    def __init__(self, message: str = "Invalid or expired token", error_code: str = "TOKEN_SIGNATURE_INVALID"):
        super().__init__(message, error_code)


class MalformedTokenError(InvalidTokenError):
    """令牌格式、发行者、类型或声明无效"""

    def __init__(self, message: str = "Invalid or expired token", error_code: str = "TOKEN_MALFORMED"):
        super().__init__(message, error_code)


class AuthorizationError(LmsError):
    """权限授权异常"""

    status_code = 403

    def __init__(self, message: str = "Access denied", error_code: str = "PERMISSION_DENIED"):
        super().__init__(message, error_code)


class AuthorizationContractError(RuntimeError):
    """授权检查在认证之前执行（编程错误）"""


class NotFoundError(LmsError):
    """引用的实体不存在"""

    status_code = 404

    def __init__(self, message: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(message, error_code)


class UserNotFoundError(NotFoundError):
    """用户不存在异常"""

    def __init__(self, message: str = "User not found", error_code: str = "USER_NOT_FOUND"):
        super().__init__(message, error_code)


class ConflictError(LmsError):
    """唯一性冲突"""

    status_code = 400

    def __init__(self, message: str = "Conflict", error_code: str = "CONFLICT"):
        super().__init__(message, error_code)


class DuplicateEmailError(ConflictError):
    """邮箱已被注册"""

    def __init__(self, message: str = "User already exists", error_code: str = "DUPLICATE_EMAIL"):
        super().__init__(message, error_code)


class DuplicateUsernameError(ConflictError):
    """用户名已被占用"""

    def __init__(self, message: str = "Username already taken", error_code: str = "DUPLICATE_USERNAME"):
        super().__init__(message, error_code)


class InternalError(LmsError):
    """协作方意外失败"""

    status_code = 500

    def __init__(self, message: str = "Something went wrong!", error_code: str = "INTERNAL_ERROR",
                 detail: str = None):
        super().__init__(message, error_code, detail)


class EmailDeliveryError(InternalError):
    """邮件发送失败"""

    def __init__(self, message: str = "Password reset request failed", error_code: str = "EMAIL_DELIVERY_FAILED",
                 detail: str = None):
        super().__init__(message, error_code, detail)
