"""
系统配置管理
所有配置在启动时加载一次，之后以只读对象的形式显式传递
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from lms.auth.exceptions import ConfigurationError


class MongoSettings(BaseSettings):
    """MongoDB配置"""
    uri: str = Field(..., min_length=1)
    database: Optional[str] = None
    server_selection_timeout_ms: int = 5000
    max_pool_size: int = 50
    min_pool_size: int = 0

    model_config = SettingsConfigDict(env_prefix="MONGODB_", env_file=".env", extra="ignore")


class JWTSettings(BaseSettings):
    """JWT签名配置"""
    secret: str = Field(..., min_length=1)
    algorithm: str = "HS256"
    issuer: str = "lms-backend"
    access_token_expire_hours: int = 24
    reset_token_expire_minutes: int = 60

    model_config = SettingsConfigDict(env_prefix="JWT_", env_file=".env", extra="ignore")


class EmailSettings(BaseSettings):
    """发件邮箱配置"""
    user: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, validation_alias=AliasChoices("EMAIL_PASS", "EMAIL_PASSWORD"))
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    from_name: str = "LMS"

    model_config = SettingsConfigDict(env_prefix="EMAIL_", env_file=".env", extra="ignore", populate_by_name=True)


class LogSettings(BaseSettings):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size: int = 10  # MB
    backup_count: int = 5

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")


class Settings(BaseSettings):
    """主配置类"""
    # 环境
    environment: str = "development"
    service_name: str = "lms_backend"

    # 服务监听
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: List[str] = ["*"]

    # 重置密码链接的前端地址
    frontend_url: str = Field(..., min_length=1)

    # bcrypt加密轮数
    bcrypt_rounds: int = 10

    # 子配置
    mongo: MongoSettings = Field(default_factory=MongoSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def load_settings(**overrides) -> Settings:
    """
    加载配置，缺少必需配置时抛出ConfigurationError

    Args:
        overrides: 覆盖环境变量的配置值

    Returns:
        配置实例
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = sorted({'.'.join(str(part) for part in error['loc']) for error in e.errors()})
        raise ConfigurationError(f"invalid or missing configuration: {', '.join(missing)}") from e


@lru_cache()
def get_settings() -> Settings:
    """获取配置实例"""
    return load_settings()
