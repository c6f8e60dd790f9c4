"""
密码管理器
提供密码哈希和验证功能
"""

import bcrypt

from .exceptions import ValidationError

# bcrypt只使用前72字节
MAX_PASSWORD_BYTES = 72


class PasswordManager:
    """密码管理器"""

    def __init__(self, rounds: int = 10):
        """
        初始化密码管理器

        Args:
            rounds: bcrypt加密轮数，默认10轮
        """
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """
        哈希密码

        Args:
            password: 明文密码

        Returns:
            哈希后的密码（包含盐值）

        Raises:
            ValueError: 密码为空
            ValidationError: 密码超过72字节（UTF-8编码）
        """
        if not password:
            raise ValueError("password must not be empty")

        encoded = password.encode('utf-8')
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        # 生成盐值并哈希
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(encoded, salt)
        return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """
        验证密码，不匹配时返回False而不是抛出异常

        Args:
            password: 明文密码
            hashed_password: 哈希后的密码

        Returns:
            密码是否匹配
        """
        if not password or not hashed_password:
            return False

        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
        except (ValueError, TypeError):
            return False
