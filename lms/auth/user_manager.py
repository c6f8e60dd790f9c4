"""
用户管理器
提供用户注册、登录认证、资料更新等功能
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from ..logging import get_logger
from .models import User, UserRole, RegistrationData
from .password_manager import PasswordManager
from .exceptions import (
    UserNotFoundError, InvalidCredentialsError, ValidationError,
    InvalidRoleError, DuplicateEmailError, DuplicateUsernameError
)


logger = get_logger(__name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'phone_number', 'username', 'password')


def _object_id(user_id: Optional[str]) -> Optional[ObjectId]:
    if user_id and ObjectId.is_valid(user_id):
        return ObjectId(user_id)
    return None


def _duplicate_key_error(error: DuplicateKeyError):
    """把唯一索引冲突映射为对应的业务异常"""
    details = error.details or {}
    key_fields = set(details.get('keyPattern', {})) | set(details.get('keyValue', {}))
    if 'username' in key_fields or (not key_fields and 'username' in str(error)):
        return DuplicateUsernameError()
    return DuplicateEmailError()


class UserManager:
    """用户管理器"""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        password_manager: PasswordManager = None
    ):
        """
        初始化用户管理器

        Args:
            database: MongoDB数据库连接
            password_manager: 密码管理器
        """
        self.db = database
        self.users_collection = database.users
        self.portfolios_collection = database.portfolios
        self.password_manager = password_manager or PasswordManager()

    async def ensure_indexes(self) -> None:
        """
        创建唯一索引

        注册前的查重只是提示性的，并发注册时由这些索引保证唯一
        """
        await self.users_collection.create_index([('email', ASCENDING)], unique=True)
        await self.users_collection.create_index([('username', ASCENDING)], unique=True, sparse=True)

    async def save_user(self, user: User) -> User:
        """
        保存用户，只有密码被修改时才重新哈希

        Args:
            user: 用户对象

        Returns:
            保存后的用户对象（新用户会获得id）

        Raises:
            ValueError: 密码为空
            ValidationError: 新密码超过bcrypt长度限制
            DuplicateKeyError: 违反唯一索引
        """
        if user.password_modified:
            user.apply_password_hash(self.password_manager.hash_password(user.pending_password))

        if not user.password_hash:
            raise ValueError("password is required")

        user.updated_at = datetime.now(timezone.utc)
        document = user.to_dict(include_sensitive=True)

        if user.id is None:
            result = await self.users_collection.insert_one(document)
            user.id = str(result.inserted_id)
        else:
            await self.users_collection.update_one(
                {'_id': ObjectId(user.id)},
                {'$set': document}
            )

        return user

    async def register_user(self, data: RegistrationData) -> User:
        """
        注册新用户

        Args:
            data: 注册字段

        Returns:
            创建的用户对象

        Raises:
            ValidationError: 必填字段缺失
            InvalidRoleError: 角色无效
            DuplicateEmailError: 邮箱已存在
            DuplicateUsernameError: 用户名已存在
        """
        missing = [
            name for name, value in (
                ('email', data.email),
                ('password', data.password),
                ('firstName', data.first_name),
                ('lastName', data.last_name),
                ('role', data.role)
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            role = UserRole.parse(data.role)
        except ValueError:
            raise InvalidRoleError()

        # 提示性查重，真正的保证是唯一索引
        if await self.users_collection.find_one({'email': data.email}):
            raise DuplicateEmailError()

        if data.username and await self.get_user_by_username(data.username):
            raise DuplicateUsernameError()

        user = User(
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            role=role,
            username=data.username or None,
            phone_number=data.phone_number
        )
        user.set_password(data.password)

        try:
            await self.save_user(user)
        except DuplicateKeyError as e:
            raise _duplicate_key_error(e) from e

        if data.has_portfolio_details():
            await self.portfolios_collection.insert_one({
                'user': ObjectId(user.id),
                'portfolio_url': data.portfolio_url,
                'bio': data.bio,
                'skills': list(data.skills or []),
                'published': False
            })

        logger.info("用户注册成功", extra={
            'event': 'user_registered',
            'user_id': user.id,
            'role': user.role.value
        })

        return user

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        根据ID获取用户

        Args:
            user_id: 用户ID字符串

        Returns:
            用户对象或None
        """
        object_id = _object_id(user_id)
        if object_id is None:
            return None
        user_data = await self.users_collection.find_one({'_id': object_id})
        return User.from_dict(user_data) if user_data else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """根据邮箱获取用户"""
        user_data = await self.users_collection.find_one({'email': email})
        return User.from_dict(user_data) if user_data else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """根据用户名获取用户"""
        user_data = await self.users_collection.find_one({'username': username})
        return User.from_dict(user_data) if user_data else None

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        认证用户

        邮箱不存在和密码错误对客户端返回同一个错误，只在日志中区分

        Args:
            email: 邮箱
            password: 密码

        Returns:
            认证成功的用户对象

        Raises:
            ValidationError: 缺少邮箱或密码
            InvalidCredentialsError: 凭据无效
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = await self.get_user_by_email(email)
        if not user:
            logger.info("登录失败：用户不存在", extra={'event': 'login_user_not_found'})
            raise InvalidCredentialsError()

        if not self.password_manager.verify_password(password, user.password_hash):
            logger.info("登录失败：密码错误", extra={
                'event': 'login_password_mismatch',
                'user_id': user.id
            })
            raise InvalidCredentialsError()

        return user

    async def update_profile(self, user_id: str, changes: Dict[str, Any]) -> User:
        """
        更新用户资料

        Args:
            user_id: 用户ID
            changes: 要修改的字段（first_name/last_name/phone_number/username/password）

        Returns:
            更新后的用户对象

        Raises:
            ValidationError: 没有可更新的字段（空字符串视为未提供）或新密码过长
            UserNotFoundError: 用户不存在
            DuplicateUsernameError: 用户名已被占用
        """
        changes = {key: value for key, value in changes.items() if key in PROFILE_FIELDS and value not in (None, "")}
        if not changes:
            raise ValidationError("No updatable fields provided")

        user = await self.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError()

        username = changes.get('username')
        if username and username != user.username:
            if await self.get_user_by_username(username):
                raise DuplicateUsernameError()
            user.username = username

        if 'first_name' in changes:
            user.first_name = changes['first_name']
        if 'last_name' in changes:
            user.last_name = changes['last_name']
        if 'phone_number' in changes:
            user.phone_number = changes['phone_number']
        if changes.get('password'):
            user.set_password(changes['password'])

        try:
            await self.save_user(user)
        except DuplicateKeyError as e:
            raise _duplicate_key_error(e) from e

        return user

    async def list_users(
        self,
        skip: int = 0,
        limit: int = 100,
        role: UserRole = None
    ) -> List[User]:
        """
        获取用户列表

        Args:
            skip: 跳过的记录数
            limit: 返回的记录数限制
            role: 角色过滤

        Returns:
            用户列表
        """
        query = {}
        if role:
            query['role'] = role.value

        cursor = self.users_collection.find(query).skip(skip).limit(limit)
        users_data = await cursor.to_list(length=limit)

        return [User.from_dict(data) for data in users_data]
