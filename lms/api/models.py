"""
请求/响应模型
请求字段全部可选，缺失字段由业务层返回统一的400错误
"""

from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """接受camelCase字段名，同时允许使用字段名"""
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    role: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    portfolio_url: Optional[str] = Field(default=None, alias="portfolioUrl")
    bio: Optional[str] = None
    skills: Optional[List[str]] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class UpdateProfileRequest(CamelModel):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    username: Optional[str] = None
    password: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """只返回请求中出现的字段"""
        return self.model_dump(exclude_none=True)
