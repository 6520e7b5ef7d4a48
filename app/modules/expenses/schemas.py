from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, description="Monto del gasto")
    category: str = Field(..., min_length=1, max_length=100)
    expense_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        return v.quantize(Decimal('0.01'))

    @field_validator('description', 'category')
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El campo no puede estar vacío')
        return v


class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    expense_date: Optional[date] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)


class ExpenseOut(BaseModel):
    id: UUID
    description: str
    amount: Decimal
    category: str
    expense_date: date
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseList(BaseModel):
    items: List[ExpenseOut]
    total: int
    total_amount: Decimal  # Suma de los gastos filtrados
    limit: int
    offset: int
