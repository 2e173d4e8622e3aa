from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional
from eventhub.models.user import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    role: UserRole = UserRole.CUSTOMER
    referral_code: Optional[str] = None

    @field_validator("role")
    @classmethod
    def no_self_service_admins(cls, role: UserRole) -> UserRole:
        if role == UserRole.ADMIN:
            raise ValueError("Cannot register as admin")
        return role


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: UserRole
    points: int
    referral_code: str
    referred_by: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: Optional[int] = None
    role: Optional[str] = None
