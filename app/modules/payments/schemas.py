from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal
from app.modules.payments.models import PaymentAccountType, PaymentMethod


# ===== PAYMENT ACCOUNT SCHEMAS =====

class PaymentAccountCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, description="Nombre de la cuenta")
    account_type: PaymentAccountType
    bank_name: Optional[str] = Field(None, max_length=100)
    account_number: Optional[str] = Field(None, max_length=50)
    account_holder: Optional[str] = Field(None, max_length=150)
    currency: str = Field("DOP", min_length=3, max_length=3)
    initial_balance: Decimal = Field(Decimal("0"), description="Saldo inicial")
    is_default: bool = False
    notes: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('El nombre debe tener al menos 2 caracteres')
        return v

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper()

    @field_validator('initial_balance')
    @classmethod
    def round_balance(cls, v):
        return v.quantize(Decimal('0.01'))


class PaymentAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    account_type: Optional[PaymentAccountType] = None
    bank_name: Optional[str] = Field(None, max_length=100)
    account_number: Optional[str] = Field(None, max_length=50)
    account_holder: Optional[str] = Field(None, max_length=150)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class PaymentAccountOut(BaseModel):
    id: UUID
    name: str
    account_type: PaymentAccountType
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder: Optional[str] = None
    currency: str
    initial_balance: Decimal
    current_balance: Decimal
    is_active: bool
    is_default: bool
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentAccountValidation(BaseModel):
    """Resultado de verificar si la organización puede registrar cobros"""
    is_valid: bool
    message: str
    redirect_url: Optional[str] = None
    accounts_count: int


# ===== PAYMENT SCHEMAS =====

class PaymentCreate(BaseModel):
    invoice_id: UUID
    amount: Decimal = Field(..., gt=0, description="Monto del pago")
    method: PaymentMethod = PaymentMethod.CASH
    payment_date: date = Field(default_factory=date.today)
    payment_account_id: Optional[UUID] = Field(None, description="Si se omite se usa la cuenta por defecto")
    reference: Optional[str] = Field(None, max_length=100, description="Referencia del pago")
    notes: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        return v.quantize(Decimal('0.01'))


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        return v.quantize(Decimal('0.01')) if v is not None else v


class PaymentOut(BaseModel):
    id: UUID
    invoice_id: UUID
    payment_account_id: Optional[UUID] = None
    amount: Decimal
    method: PaymentMethod
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentList(BaseModel):
    items: List[PaymentOut]
    total: int
    total_amount: Decimal
    limit: int
    offset: int
