from app.database.database import Base
from sqlalchemy import Column, String, Date, ForeignKey, UniqueConstraint, Numeric, Enum, Text, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Quote(Base, TenantMixin, TimestampMixin):
    __tablename__ = "quotes"

    id = Column(Uuid, primary_key=True, default=uuid4)

    document_type_id = Column(Uuid, ForeignKey("fiscal_document_types.id"), nullable=False)
    fiscal_sequence_id = Column(
        Uuid, ForeignKey("fiscal_sequences.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    fiscal_number = Column(String(50), nullable=False)

    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True, index=True)
    customer_name = Column(String(150), nullable=False)
    customer_tax_id = Column(String(20), nullable=True)
    customer_email = Column(String, nullable=True)

    status = Column(Enum(QuoteStatus), nullable=False, default=QuoteStatus.DRAFT)
    issue_date = Column(Date, nullable=False, default=date.today)
    valid_until = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default="DOP")

    # Factura generada desde esta cotización; una cotización se convierte una sola vez
    converted_invoice_id = Column(Uuid, ForeignKey("invoices.id"), nullable=True, unique=True)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    document_type = relationship("FiscalDocumentType")
    line_items = relationship("QuoteLineItem", back_populates="quote", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("organization_id", "document_type_id", "fiscal_number", name="uq_quote_org_type_number"),
    )


class QuoteLineItem(Base, TimestampMixin):
    __tablename__ = "quote_line_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    quote_id = Column(Uuid, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(10, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    line_total = Column(Numeric(15, 2), nullable=False)

    quote = relationship("Quote", back_populates="line_items")
