from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime


class UserCreate(BaseModel):
    """Registration payload."""
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UserLogin(BaseModel):
    """Login payload; ``username`` may also be an email address."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username or email is required")
        return value


class UserPublic(BaseModel):
    id: str
    username: str
    email: str


class UserProfile(UserPublic):
    createdAt: datetime


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


class ProfileResponse(BaseModel):
    user: UserProfile
