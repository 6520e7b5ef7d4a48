from app.database.database import Base
from sqlalchemy import Column, String, Date, ForeignKey, UniqueConstraint, Numeric, Enum, Text, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from decimal import Decimal
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
from app.common.totals import money
import enum


class InvoiceStatus(str, enum.Enum):
    ISSUED = "issued"    # Emitida, pendiente de pago
    PAID = "paid"        # Pagada completamente
    VOID = "void"        # Anulada (el número fiscal no se reutiliza)


class Invoice(Base, TenantMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Numeración fiscal
    document_type_id = Column(Uuid, ForeignKey("fiscal_document_types.id"), nullable=False)
    fiscal_sequence_id = Column(
        Uuid, ForeignKey("fiscal_sequences.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    fiscal_number = Column(String(50), nullable=False)

    # Cliente: referencia opcional más copia de los datos al emitir
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True, index=True)
    customer_name = Column(String(150), nullable=False)
    customer_tax_id = Column(String(20), nullable=True)  # RNC o cédula
    customer_email = Column(String, nullable=True)

    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.ISSUED)
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default="DOP")

    # Totals (calculated)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    # Relationships
    document_type = relationship("FiscalDocumentType")
    line_items = relationship("InvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("organization_id", "document_type_id", "fiscal_number", name="uq_invoice_org_type_number"),
    )

    @property
    def paid_amount(self) -> Decimal:
        return money(sum((p.amount for p in self.payments), Decimal("0")))

    @property
    def balance_due(self) -> Decimal:
        return money(self.total - self.paid_amount)


class InvoiceLineItem(Base, TimestampMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(10, 3), nullable=False)  # Permitir decimales para servicios
    unit_price = Column(Numeric(15, 2), nullable=False)  # Precio sin impuestos
    line_total = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price

    invoice = relationship("Invoice", back_populates="line_items")
