"""
MongoDB异步客户端
封装连接建立、健康检查和连接关闭
"""

from typing import Optional

import motor.motor_asyncio
from pymongo.errors import PyMongoError

from ..config.database import get_database_name, mask_database_url
from ..logging import get_logger


logger = get_logger(__name__)


class AsyncMongoDBClient:
    """MongoDB异步客户端"""

    def __init__(
        self,
        uri: str,
        database: Optional[str] = None,
        **kwargs
    ):
        """
        初始化客户端，不立即建立连接

        Args:
            uri: MongoDB连接字符串
            database: 数据库名称，为空时从连接字符串中解析
            **kwargs: 额外的客户端参数，覆盖默认值
        """
        self.uri = uri
        self.database_name = get_database_name(uri, database)

        # MongoDB客户端配置
        self.client_options = {
            'serverSelectionTimeoutMS': 5000,
            'connectTimeoutMS': 5000,
            'maxPoolSize': 50,
            'minPoolSize': 0,
            **kwargs
        }

        self.client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None
        self.db: Optional[motor.motor_asyncio.AsyncIOMotorDatabase] = None

    @classmethod
    def from_settings(cls, mongo_settings) -> 'AsyncMongoDBClient':
        """根据MongoSettings创建客户端"""
        return cls(
            mongo_settings.uri,
            database=mongo_settings.database,
            serverSelectionTimeoutMS=mongo_settings.server_selection_timeout_ms,
            maxPoolSize=mongo_settings.max_pool_size,
            minPoolSize=mongo_settings.min_pool_size
        )

    async def connect(self) -> bool:
        """
        建立数据库连接并ping验证

        Returns:
            是否连接成功
        """
        try:
            self.client = motor.motor_asyncio.AsyncIOMotorClient(self.uri, **self.client_options)
            await self.client.admin.command('ping')
            self.db = self.client[self.database_name]
            logger.info("MongoDB连接成功", extra={
                'event': 'mongodb_connected',
                'uri': mask_database_url(self.uri),
                'database': self.database_name
            })
            return True
        except PyMongoError as e:
            logger.error(f"MongoDB连接失败: {e}", extra={
                'event': 'mongodb_connection_failed',
                'uri': mask_database_url(self.uri)
            })
            if self.client is not None:
                self.client.close()
            self.client = None
            self.db = None
            return False

    async def disconnect(self):
        """断开数据库连接"""
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB连接已断开", extra={'event': 'mongodb_disconnected'})
