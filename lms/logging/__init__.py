"""
日志记录包
提供结构化日志记录功能
"""

from .config import setup_logging, get_logger, get_logging_config, LmsJsonFormatter
from .context import LogContext

__all__ = [
    'setup_logging',
    'get_logger',
    'get_logging_config',
    'LmsJsonFormatter',
    'LogContext'
]
