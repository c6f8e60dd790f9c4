"""
数据库配置模块
提供数据库连接字符串解析
"""

from typing import Optional

DEFAULT_DATABASE_NAME = "lms"


def get_database_name(uri: str, database: Optional[str] = None) -> str:
    """
    获取数据库名称

    Args:
        uri: MongoDB连接字符串，如 mongodb://host:27017/lms?authSource=admin
        database: 显式配置的数据库名称，优先于连接字符串

    Returns:
        数据库名称
    """
    if database:
        return database

    # 不使用pymongo的解析器，mongodb+srv会触发DNS查询
    rest = uri.split('://', 1)[-1]
    path = rest.partition('/')[2]
    name = path.split('?', 1)[0]
    return name or DEFAULT_DATABASE_NAME


def mask_database_url(uri: str) -> str:
    """隐藏连接字符串中的凭据，用于日志"""
    if '@' not in uri:
        return uri
    scheme, _, rest = uri.partition('://')
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
