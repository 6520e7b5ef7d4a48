from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    sku: Optional[str] = Field(None, max_length=50, description="Código interno")
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, description="Precio de venta sin impuestos")
    category: Optional[str] = Field(None, max_length=100)
    unit: str = Field("unidad", min_length=1, max_length=30)
    is_active: bool = True

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El nombre es obligatorio')
        return v

    @field_validator('sku', 'category')
    @classmethod
    def blank_to_none(cls, v):
        if v is not None and v.strip() == "":
            return None
        return v.strip() if v else v

    @field_validator('price')
    @classmethod
    def round_price(cls, v):
        return v.quantize(Decimal('0.01'))


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    sku: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    unit: Optional[str] = Field(None, min_length=1, max_length=30)
    is_active: Optional[bool] = None

    @field_validator('sku', 'category')
    @classmethod
    def blank_to_none(cls, v):
        if v is not None and v.strip() == "":
            return None
        return v.strip() if v else v


class ProductOut(BaseModel):
    id: UUID
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    category: Optional[str] = None
    unit: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    items: List[ProductOut]
    total: int
    limit: int
    offset: int
