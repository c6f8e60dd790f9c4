"""
pytest配置文件
提供通用的fixtures和测试配置
"""
import copy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, AsyncMock

import pytest
import pytest_asyncio
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from lms.api.main import create_app
from lms.auth import JWTAuthenticator, PasswordManager, UserManager, PasswordResetService
from lms.config import load_settings, MongoSettings, JWTSettings, EmailSettings


TEST_JWT_SECRET = "test-jwt-secret"
TEST_FRONTEND_URL = "http://localhost:3000"


class FakeCursor:
    """模拟Motor游标"""

    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents
        self._skip = 0
        self._limit = 0

    def skip(self, count: int) -> "FakeCursor":
        self._skip = count
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._limit = count
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        documents = self._documents[self._skip:]
        if self._limit:
            documents = documents[:self._limit]
        if length is not None:
            documents = documents[:length]
        return [copy.deepcopy(document) for document in documents]


class FakeCollection:
    """
    内存中的Motor集合
    支持用户管理器用到的操作，并按已创建的唯一索引抛出DuplicateKeyError
    """

    def __init__(self, name: str):
        self.name = name
        self.documents: List[Dict[str, Any]] = []
        self.indexes: List[Dict[str, Any]] = []

    @staticmethod
    def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
        return all(key in document and document[key] == value for key, value in query.items())

    def _check_unique(self, document: Dict[str, Any], exclude_id=None):
        for index in self.indexes:
            if not index['unique']:
                continue
            field = index['field']
            if index['sparse'] and field not in document:
                continue
            value = document.get(field)
            for existing in self.documents:
                if existing['_id'] == exclude_id:
                    continue
                if index['sparse'] and field not in existing:
                    continue
                if existing.get(field) == value:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: lms.{self.name} index: {field}_1",
                        code=11000,
                        details={'keyPattern': {field: 1}, 'keyValue': {field: value}}
                    )

    async def create_index(self, keys, unique: bool = False, sparse: bool = False, **kwargs) -> str:
        field = keys[0][0]
        self.indexes.append({'field': field, 'unique': unique, 'sparse': sparse})
        return f"{field}_1"

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self.documents:
            if self._matches(document, query):
                return copy.deepcopy(document)
        return None

    def find(self, query: Optional[Dict[str, Any]] = None) -> FakeCursor:
        query = query or {}
        return FakeCursor([document for document in self.documents if self._matches(document, query)])

    async def insert_one(self, document: Dict[str, Any]):
        document.setdefault('_id', ObjectId())
        self._check_unique(document)
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document['_id'], acknowledged=True)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any]):
        for stored in self.documents:
            if self._matches(stored, query):
                updated = copy.deepcopy(stored)
                updated.update(update.get('$set', {}))
                self._check_unique(updated, exclude_id=stored['_id'])
                stored.clear()
                stored.update(updated)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


class FakeDatabase:
    """内存中的Motor数据库，按属性或下标访问集合"""

    def __init__(self):
        self._collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith('_'):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def fake_db():
    """内存数据库"""
    return FakeDatabase()


@pytest.fixture
def settings():
    """测试配置"""
    return load_settings(
        frontend_url=TEST_FRONTEND_URL,
        bcrypt_rounds=4,
        mongo=MongoSettings(uri="mongodb://localhost:27017/lms_test"),
        jwt=JWTSettings(secret=TEST_JWT_SECRET),
        email=EmailSettings(user="noreply@example.com", password="smtp-password")
    )


@pytest.fixture
def password_manager():
    """低轮数的密码管理器，加快测试"""
    return PasswordManager(rounds=4)


@pytest.fixture
def jwt_authenticator():
    return JWTAuthenticator(secret_key=TEST_JWT_SECRET)


@pytest_asyncio.fixture
async def user_manager(fake_db, password_manager):
    """已创建索引的用户管理器"""
    manager = UserManager(fake_db, password_manager)
    await manager.ensure_indexes()
    return manager


@pytest.fixture
def mock_email_service():
    """模拟邮件服务，默认发送成功"""
    service = Mock()
    service.send_password_reset_email = AsyncMock(return_value=True)
    return service


@pytest.fixture
def password_reset_service(user_manager, jwt_authenticator, mock_email_service):
    return PasswordResetService(user_manager, jwt_authenticator, mock_email_service, TEST_FRONTEND_URL)


@pytest.fixture
def app(settings, fake_db, mock_email_service):
    """注入内存数据库和模拟邮件服务的应用"""
    return create_app(settings, database=fake_db, email_service=mock_email_service)


@pytest.fixture
def client(app):
    """HTTP测试客户端（触发lifespan）"""
    with TestClient(app) as test_client:
        yield test_client
