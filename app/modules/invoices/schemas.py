from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal
from app.modules.invoices.models import InvoiceStatus


class DocumentLineCreate(BaseModel):
    """Línea de factura o cotización: desde el catálogo (product_id) o libre"""
    product_id: Optional[UUID] = Field(None, description="Producto del catálogo")
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    quantity: Decimal = Field(..., gt=0, description="Cantidad debe ser mayor a 0")
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Precio unitario sin impuestos")

    @model_validator(mode='after')
    def require_product_or_details(self):
        if self.product_id is None and (self.description is None or self.unit_price is None):
            raise ValueError('Cada línea necesita product_id o descripción y precio unitario')
        return self


class DocumentLineOut(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class DocumentCustomer(BaseModel):
    """Datos del cliente comunes a facturas y cotizaciones"""
    client_id: Optional[UUID] = Field(None, description="Cliente registrado")
    customer_name: Optional[str] = Field(None, min_length=2, max_length=150)
    customer_tax_id: Optional[str] = Field(None, max_length=20)
    customer_email: Optional[str] = None

    @field_validator('customer_tax_id')
    @classmethod
    def blank_tax_id(cls, v):
        if v is not None and v.strip() == "":
            return None
        return v

    @model_validator(mode='after')
    def require_customer(self):
        if self.client_id is None and self.customer_name is None:
            raise ValueError('Indique client_id o customer_name')
        return self


class InvoiceCreate(DocumentCustomer):
    document_type_id: UUID
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    apply_tax: bool = True
    items: List[DocumentLineCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @model_validator(mode='after')
    def validate_due_date(self):
        if self.due_date and self.issue_date and self.due_date < self.issue_date:
            raise ValueError('La fecha de vencimiento no puede ser anterior a la fecha de emisión')
        return self


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    reason: Optional[str] = Field(None, max_length=500, description="Motivo (se guarda en notas al anular)")


class InvoiceOut(BaseModel):
    id: UUID
    document_type_id: UUID
    fiscal_sequence_id: UUID
    fiscal_number: str
    client_id: Optional[UUID] = None
    customer_name: str
    customer_tax_id: Optional[str] = None
    customer_email: Optional[str] = None
    status: InvoiceStatus
    issue_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    line_items: List[DocumentLineOut]


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int
