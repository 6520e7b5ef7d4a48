from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime


def _validate_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError('La contraseña debe tener al menos 8 caracteres')
    if not any(c.isdigit() for c in v) or not any(c.isalpha() for c in v):
        raise ValueError('La contraseña debe contener letras y números')
    return v

# User schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2, max_length=100)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password_strength(v)

class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: str
    is_active: bool
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v):
        return _validate_password_strength(v)

class UserOrganizationOut(BaseModel):
    id: UUID
    organization_id: UUID
    role: str
    is_active: bool
    joined_at: datetime
    organization_name: str

    class Config:
        from_attributes = True

# Token schemas
class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    user: UserOut
    organizations: List[UserOrganizationOut]

class OrganizationSelectionRequest(BaseModel):
    organization_id: UUID

class ContextTokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    organization_id: UUID
    organization_name: str
    user_role: str
    permissions: List[str]

class AuthContext(BaseModel):
    user_id: UUID
    organization_id: Optional[UUID] = None
    user_role: Optional[str] = None
    organizations: List[UserOrganizationOut] = []
