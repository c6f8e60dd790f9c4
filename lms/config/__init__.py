"""
配置模块
"""

from .database import get_database_name, mask_database_url
from .settings import (
    get_settings, load_settings,
    Settings, MongoSettings, JWTSettings, EmailSettings, LogSettings
)

__all__ = [
    'get_database_name',
    'mask_database_url',
    'get_settings',
    'load_settings',
    'Settings',
    'MongoSettings',
    'JWTSettings',
    'EmailSettings',
    'LogSettings'
]
