from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal
from uuid import UUID
from datetime import datetime
from app.common.validators import validate_rnc, validate_phone, format_tax_id


def _check_tax_id(v):
    if v is None or v.strip() == "":
        return None
    if not validate_rnc(v):
        raise ValueError('RNC inválido. Debe tener 9 dígitos')
    return format_tax_id(v)


def _check_phone(v):
    if v is None or v.strip() == "":
        return None
    if not validate_phone(v):
        raise ValueError('Número de teléfono inválido')
    return v


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=20)

    @field_validator('tax_id')
    @classmethod
    def validate_tax_id(cls, v):
        return _check_tax_id(v)

    @field_validator('phone')
    @classmethod
    def validate_phone_number(cls, v):
        return _check_phone(v)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=20)

    @field_validator('tax_id')
    @classmethod
    def validate_tax_id(cls, v):
        return _check_tax_id(v)

    @field_validator('phone')
    @classmethod
    def validate_phone_number(cls, v):
        return _check_phone(v)


class OrganizationOut(BaseModel):
    id: UUID
    name: str
    slug: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    plan: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationWithRole(OrganizationOut):
    user_role: str


class MemberOut(BaseModel):
    user_id: UUID
    email: str
    full_name: str
    role: str
    is_active: bool
    joined_at: datetime


class MemberRoleUpdate(BaseModel):
    role: Literal["owner", "admin", "member"]


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Literal["admin", "member"] = "member"


class InvitationOut(BaseModel):
    id: UUID
    organization_id: UUID
    invitee_email: str
    role: str
    expires_at: datetime
    is_accepted: bool

    class Config:
        from_attributes = True


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=16, max_length=64)
    # Solo requeridos cuando el email invitado aún no tiene cuenta
    password: Optional[str] = Field(None, min_length=8)
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)


class InvitationAcceptOut(BaseModel):
    user_id: UUID
    organization_id: UUID
    organization_name: str
    role: str
