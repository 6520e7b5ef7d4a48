from app.database.database import Base
from sqlalchemy import (
    Column, String, Boolean, Date, ForeignKey, UniqueConstraint, Index, Numeric, Enum, Text, Uuid, text
)
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class PaymentAccountType(str, enum.Enum):
    CASH = "caja_chica"
    BANK = "banco"
    CARD = "tarjeta"
    DIGITAL = "digital"


class PaymentMethod(str, enum.Enum):
    CASH = "efectivo"
    TRANSFER = "transferencia"
    CARD = "tarjeta"
    CHECK = "cheque"
    OTHER = "otro"


class PaymentAccount(Base, TenantMixin, TimestampMixin):
    __tablename__ = "payment_accounts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    account_type = Column(Enum(PaymentAccountType), nullable=False)
    bank_name = Column(String(100), nullable=True)
    account_number = Column(String(50), nullable=True)
    account_holder = Column(String(150), nullable=True)
    currency = Column(String(3), nullable=False, default="DOP")

    initial_balance = Column(Numeric(15, 2), nullable=False, default=0)
    current_balance = Column(Numeric(15, 2), nullable=False, default=0)  # Solo se modifica con UPDATE atómico

    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_payment_account_org_name"),
        # Una sola cuenta por defecto por organización
        Index(
            "uq_payment_accounts_default_per_org",
            "organization_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )


class Payment(Base, TenantMixin, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id"), nullable=False, index=True)
    payment_account_id = Column(
        Uuid, ForeignKey("payment_accounts.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    payment_date = Column(Date, nullable=False, default=date.today)
    reference = Column(String(100), nullable=True)  # Número de transferencia, cheque, etc.
    notes = Column(Text, nullable=True)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
    payment_account = relationship("PaymentAccount")
