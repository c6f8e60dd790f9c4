"""
用户认证相关数据模型
"""

from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    """用户角色枚举"""
    ADMIN = "admin"
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    PORTFOLIO = "portfolio"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        """
        严格解析角色字符串

        Args:
            value: 角色字符串或枚举

        Returns:
            角色枚举

        Raises:
            ValueError: 值不在枚举中
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"invalid role: {value!r}")
        return cls(value)


@dataclass(frozen=True)
class Identity:
    """认证后附加到请求上的身份 (用户ID + 角色)"""
    user_id: str
    role: UserRole


@dataclass
class User:
    """用户模型"""
    email: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.STUDENT
    password_hash: str = ""
    username: Optional[str] = None
    phone_number: Optional[str] = None
    courses: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    # 待哈希的新密码，只在保存前存在
    _pending_password: Optional[str] = field(default=None, repr=False, compare=False)

    def set_password(self, plaintext: str) -> None:
        """设置新密码，保存时由UserManager哈希"""
        self._pending_password = plaintext

    @property
    def password_modified(self) -> bool:
        """密码自加载后是否被修改"""
        return self._pending_password is not None

    @property
    def pending_password(self) -> Optional[str]:
        return self._pending_password

    def apply_password_hash(self, password_hash: str) -> None:
        """写入哈希并丢弃明文"""
        self.password_hash = password_hash
        self._pending_password = None

    def to_dict(self, include_sensitive: bool = False) -> Dict[str, Any]:
        """转换为MongoDB文档（不含_id）"""
        data = {
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role.value,
            'phone_number': self.phone_number,
            'courses': list(self.courses),
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

        # username是稀疏唯一索引，缺省时不能写入null
        if self.username:
            data['username'] = self.username

        if include_sensitive:
            data['password_hash'] = self.password_hash

        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """对外公开的用户视图"""
        return {
            'id': self.id,
            'email': self.email,
            'username': self.username,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'role': self.role.value,
            'phoneNumber': self.phone_number
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        """从MongoDB文档创建用户"""
        return cls(
            id=str(data['_id']) if data.get('_id') is not None else None,
            email=data['email'],
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
            role=UserRole.parse(data['role']),
            password_hash=data.get('password_hash', ''),
            username=data.get('username'),
            phone_number=data.get('phone_number'),
            courses=[str(course) for course in data.get('courses', [])],
            created_at=data.get('created_at') or utcnow(),
            updated_at=data.get('updated_at') or utcnow()
        )


@dataclass
class RegistrationData:
    """注册请求中的字段"""
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    username: Optional[str] = None
    phone_number: Optional[str] = None
    portfolio_url: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None

    def has_portfolio_details(self) -> bool:
        return bool(self.portfolio_url or self.bio or self.skills)
