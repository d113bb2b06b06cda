"""
Auth API schemas (request/response models).
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .security import is_utf8_text


class _TextRequest(BaseModel):
    @field_validator("*")
    @classmethod
    def _utf8_only(cls, value: object) -> object:
        if isinstance(value, str) and not is_utf8_text(value):
            raise ValueError("must be valid UTF-8 text")
        return value


class RegisterRequest(_TextRequest):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class LoginRequest(_TextRequest):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class AdminLoginRequest(_TextRequest):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)


class VerifyAdminRequest(_TextRequest):
    token: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    token: str


class AuthResponse(BaseModel):
    user: UserResponse


class AdminResponse(BaseModel):
    id: str
    username: str
    role: str
    login_at: str
    expires_at: str


class AdminLoginResponse(BaseModel):
    token: str
    admin: AdminResponse


class VerifyAdminResponse(BaseModel):
    admin: AdminResponse
