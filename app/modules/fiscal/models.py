from app.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Index, Text, Uuid,
    DateTime, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class DocumentCategory(str, enum.Enum):
    INVOICE = "invoice"          # Facturas (crédito fiscal, consumidor final, gubernamental)
    CREDIT_NOTE = "credit_note"  # Notas de crédito
    QUOTE = "quote"              # Cotizaciones


class FiscalDocumentType(Base, TenantMixin, TimestampMixin):
    """Tipos de comprobante por organización (B01, B02, COT...)"""
    __tablename__ = "fiscal_document_types"

    id = Column(Uuid, primary_key=True, default=uuid4)
    code = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, default=DocumentCategory.INVOICE.value)
    requires_tax_id = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    sequences = relationship("FiscalSequence", back_populates="document_type")

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_document_type_org_code"),
    )


class FiscalSequence(Base, TenantMixin, TimestampMixin):
    """
    Secuencia de numeración fiscal.

    current_number es el próximo número a emitir. Solo lo modifican la
    asignación atómica y el reinicio administrativo.
    """
    __tablename__ = "fiscal_sequences"

    id = Column(Uuid, primary_key=True, default=uuid4)
    document_type_id = Column(Uuid, ForeignKey("fiscal_document_types.id"), nullable=False, index=True)

    prefix = Column(String(10), nullable=False, default="")
    suffix = Column(String(10), nullable=False, default="")
    initial_number = Column(Integer, nullable=False, default=1)
    current_number = Column(Integer, nullable=False, default=1)
    max_number = Column(Integer, nullable=True)  # Inclusivo; None = sin límite
    padding_length = Column(Integer, nullable=False, default=8)
    is_active = Column(Boolean, nullable=False, default=True)

    document_type = relationship("FiscalDocumentType", back_populates="sequences")

    __table_args__ = (
        # Una sola secuencia activa por (organización, tipo de documento)
        Index(
            "uq_fiscal_sequences_active_per_type",
            "organization_id", "document_type_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint("initial_number >= 0", name="ck_fiscal_sequences_initial_number"),
        CheckConstraint("padding_length >= 1", name="ck_fiscal_sequences_padding_length"),
    )

    @property
    def numbers_issued(self) -> int:
        return max(self.current_number - self.initial_number, 0)

    @property
    def is_exhausted(self) -> bool:
        return self.max_number is not None and self.current_number > self.max_number


class FiscalSequenceReset(Base, TenantMixin):
    """Registro de auditoría de cada reinicio de secuencia"""
    __tablename__ = "fiscal_sequence_resets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    sequence_id = Column(Uuid, ForeignKey("fiscal_sequences.id", ondelete="CASCADE"), nullable=False, index=True)
    reset_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    previous_number = Column(Integer, nullable=False)
    new_number = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
