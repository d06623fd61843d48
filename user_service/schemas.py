import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

EMAIL_REGEX = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
# Số VN: 10 số, bắt đầu bằng 0
PHONE_REGEX = r'^0\d{9}$'


class UserFields(BaseModel):
    """Validate chung cho các DTO có email / phone / password."""

    # 1. Validate Email
    @field_validator('email', check_fields=False)
    @classmethod
    def validate_email(cls, v):
        if v is not None and not re.match(EMAIL_REGEX, v):
            raise ValueError('Invalid email')
        return v

    # 2. Validate Số điện thoại
    @field_validator('phone', check_fields=False)
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not re.match(PHONE_REGEX, v):
            raise ValueError('Invalid phone number (10 digits, starting with 0)')
        return v

    # 3. Password không được rỗng
    @field_validator('password', check_fields=False)
    @classmethod
    def validate_password(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Password must not be empty')
        return v


class UserCreate(UserFields):
    username: str
    email: str
    password: str
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    role: int


class RegisterRequest(UserFields):
    model_config = ConfigDict(extra="forbid")

    username: str
    email: str
    password: str
    name: Optional[str] = None
    phone: Optional[str] = None
    # UID do provider ngoài cấp (nếu có), không có thì hệ thống tự sinh
    id: Optional[str] = None

    @field_validator('id')
    @classmethod
    def validate_id(cls, v):
        if v is not None and not 0 < len(v) <= 28:
            raise ValueError('Id must be 1-28 characters')
        return v


class UserSelfUpdate(UserFields):
    """Các trường user được tự sửa. Không có `role`: gửi kèm role sẽ bị từ chối."""
    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    password: Optional[str] = None

    @field_validator('username', 'email', 'password')
    @classmethod
    def not_null(cls, v):
        # Cột bắt buộc: null chỉ hợp lệ với name, phone, avatar
        if v is None:
            raise ValueError('Field must not be null')
        return v


class UserUpdate(UserSelfUpdate):
    role: Optional[int] = None


class PasswordUpdate(UserFields):
    password: str


class ProviderLink(BaseModel):
    provider: str
    provider_id: str


class LoginRequest(BaseModel):
    # username hoặc email
    login: str
    password: str


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    permission_names: List[str] = []


class UserResponse(BaseModel):
    """View công khai của user: không bao giờ chứa password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    auth_provider: Optional[str] = None
    role: Optional[RoleResponse] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class UserListItem(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    createdAt: str
    status: str


class UserPage(BaseModel):
    items: List[UserListItem]
    totalItems: int
    page: int
    pageSize: int
    totalPages: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    id: str
    role: str
    permissions: List[str]
