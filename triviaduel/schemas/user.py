from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class UserCreate(BaseModel):
    """Schema for user registration"""
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if not v.replace('_', '').isalnum():
            raise ValueError('Username may only contain letters, digits and underscores')
        return v.lower()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if '@' not in v or v.startswith('@') or v.endswith('@'):
            raise ValueError('Invalid email address')
        return v.lower()


class UserLogin(BaseModel):
    """Schema for JSON login"""
    email: str
    password: str


class UserBrief(BaseModel):
    """Brief user info embedded in challenges, notifications and search results"""
    id: str
    username: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Schema for user response (what we return to clients)"""
    id: str
    username: str
    email: str
    is_active: bool
    push_enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    """JWT Token response"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PushTokenUpdate(BaseModel):
    """Expo device token registration"""
    push_token: str = Field(..., min_length=1, max_length=255)
