from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal
from app.modules.invoices.schemas import DocumentCustomer, DocumentLineCreate, DocumentLineOut
from app.modules.quotes.models import QuoteStatus


class QuoteCreate(DocumentCustomer):
    document_type_id: UUID
    issue_date: date = Field(default_factory=date.today)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    apply_tax: bool = True
    items: List[DocumentLineCreate] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_valid_until(self):
        if self.valid_until and self.valid_until < self.issue_date:
            raise ValueError('La fecha de validez no puede ser anterior a la fecha de emisión')
        return self


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


class QuoteConvert(BaseModel):
    """Datos de la factura que se genera desde la cotización"""
    document_type_id: UUID = Field(..., description="Tipo de comprobante de la factura (B01, B02...)")
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_due_date(self):
        if self.due_date and self.due_date < self.issue_date:
            raise ValueError('La fecha de vencimiento no puede ser anterior a la fecha de emisión')
        return self


class QuoteOut(BaseModel):
    id: UUID
    document_type_id: UUID
    fiscal_sequence_id: UUID
    fiscal_number: str
    client_id: Optional[UUID] = None
    customer_name: str
    customer_tax_id: Optional[str] = None
    customer_email: Optional[str] = None
    status: QuoteStatus
    issue_date: date
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    converted_invoice_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class QuoteDetail(QuoteOut):
    line_items: List[DocumentLineOut]


class QuoteList(BaseModel):
    quotes: List[QuoteOut]
    total: int
    limit: int
    offset: int
