"""
Esquemas Pydantic para el módulo de Clientes

El tipo de identificación se infiere del largo cuando no se indica:
9 dígitos es RNC y 11 dígitos es cédula.
"""
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import List, Optional, Tuple
from uuid import UUID
from datetime import datetime

from app.common.validators import (
    clean_tax_id, validate_rnc, validate_cedula, format_tax_id, validate_phone
)
from app.modules.clients.models import IdType


def normalize_identification(
    id_type: Optional[IdType], id_number: Optional[str]
) -> Tuple[Optional[IdType], Optional[str]]:
    """
    Valida y formatea la identificación del cliente.
    Lanza ValueError si el número no corresponde al tipo.
    """
    if id_number is None or id_number.strip() == "":
        return None, None

    id_number = id_number.strip()
    if id_type is None:
        digits = clean_tax_id(id_number)
        if len(digits) == 9:
            id_type = IdType.RNC
        elif len(digits) == 11:
            id_type = IdType.CEDULA
        else:
            raise ValueError("Indique el tipo de identificación (RNC, CEDULA o PASSPORT)")

    if id_type == IdType.RNC:
        if not validate_rnc(id_number):
            raise ValueError("RNC inválido. Debe tener 9 dígitos")
        return id_type, format_tax_id(id_number)
    if id_type == IdType.CEDULA:
        if not validate_cedula(id_number):
            raise ValueError("Cédula inválida. Debe tener 11 dígitos y dígito verificador correcto")
        return id_type, format_tax_id(id_number)
    return id_type, id_number.upper()


class ClientBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=150, description="Nombre o razón social")
    email: Optional[EmailStr] = Field(None, description="Email del cliente")
    phone: Optional[str] = Field(None, max_length=20, description="Teléfono")
    id_type: Optional[IdType] = Field(None, description="Tipo de identificación")
    id_number: Optional[str] = Field(None, max_length=20, description="RNC, cédula o pasaporte")
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('El nombre debe tener al menos 2 caracteres')
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone_number(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_phone(v):
            raise ValueError('Teléfono inválido. Ejemplo: +18095551234 o 809-555-1234')
        return v.strip()

    @model_validator(mode='after')
    def validate_identification(self):
        self.id_type, self.id_number = normalize_identification(self.id_type, self.id_number)
        return self


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    id_type: Optional[IdType] = None
    id_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('phone')
    @classmethod
    def validate_phone_number(cls, v):
        if v is None or v.strip() == "":
            return v
        if not validate_phone(v):
            raise ValueError('Teléfono inválido. Ejemplo: +18095551234 o 809-555-1234')
        return v.strip()


class ClientOut(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    id_type: Optional[IdType] = None
    id_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    deleted_at: Optional[datetime] = None
    created_by: UUID
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientList(BaseModel):
    items: List[ClientOut]
    total: int
    limit: int
    offset: int


class ClientStats(BaseModel):
    """Estadísticas de clientes"""
    total_clients: int
    active_clients: int
    inactive_clients: int
    deleted_clients: int
    with_tax_id: int
