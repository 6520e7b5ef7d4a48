"""
Modelos SQLAlchemy para el módulo de Gastos
"""
from app.database.database import Base
from sqlalchemy import Column, String, Date, ForeignKey, Numeric, Text, Uuid
from datetime import date
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin


class Expense(Base, TenantMixin, TimestampMixin):
    __tablename__ = "expenses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    expense_date = Column(Date, nullable=False, default=date.today, index=True)
    notes = Column(Text, nullable=True)
    receipt_url = Column(String(500), nullable=True)  # Comprobante escaneado

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
