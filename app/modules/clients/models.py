"""
Modelos SQLAlchemy para el módulo de Clientes

Los documentos de venta guardan una copia del nombre y RNC del cliente al
emitirse; la referencia client_id permite listar sus documentos.
"""
from app.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Uuid
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class IdType(str, enum.Enum):
    """Tipos de identificación en República Dominicana"""
    RNC = "RNC"            # Registro Nacional de Contribuyentes (9 dígitos)
    CEDULA = "CEDULA"      # Cédula de identidad (11 dígitos)
    PASSPORT = "PASSPORT"  # Pasaporte (extranjeros)


class Client(Base, TenantMixin, TimestampMixin):
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid4)

    name = Column(String(150), nullable=False, index=True)
    email = Column(String(100), nullable=True, index=True)
    phone = Column(String(20), nullable=True)

    # Identificación fiscal
    id_type = Column(String(20), nullable=True)
    id_number = Column(String(20), nullable=True, index=True)

    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)  # Soft delete

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    updated_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    def is_active_client(self) -> bool:
        """Activo y no eliminado: puede usarse en documentos nuevos"""
        return self.is_active and self.deleted_at is None
