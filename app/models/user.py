# backend/app/models/user.py
# User models for authentication and profile management

import re
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from app.models.common import CamelModel, MongoModel
from app.utils.constants import UserRole

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
CODE_PATTERN = re.compile(r"^\d{6}$")


def _check_password_strength(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


def _check_code(value: str) -> str:
    if not CODE_PATTERN.match(value):
        raise ValueError("Please enter a valid 6-digit code")
    return value


class RegisterRequest(CamelModel):
    full_name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str
    confirm_password: str

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class EmailRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class CodeVerification(EmailRequest):
    code: str

    @field_validator("code")
    @classmethod
    def six_digits(cls, v: str) -> str:
        return _check_code(v)


class ResetPasswordRequest(CodeVerification):
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UpdatePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password_strength(v)


class ProfileUpdate(CamelModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    about: Optional[str] = Field(default=None, max_length=500)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class UserStatusUpdate(CamelModel):
    is_active: bool


class UserResponse(MongoModel):
    full_name: str
    email: str
    role: UserRole = UserRole.USER
    is_email_verified: bool = False
    is_active: bool = True
    profile_image: Optional[str] = None
    about: Optional[str] = None
    has_completed_onboarding: bool = False
    has_completed_kyc: bool = False
    has_completed_vehicle_registration: bool = False
    skipped_corporate_info: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenData(CamelModel):
    user_id: Optional[str] = None
