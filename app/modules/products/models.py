from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Text, Uuid
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(150), nullable=False, index=True)
    sku = Column(String(50), nullable=True)  # Opcional; único por organización si se indica
    description = Column(Text, nullable=True)
    price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta sin impuestos
    category = Column(String(100), nullable=True, index=True)
    unit = Column(String(30), nullable=False, default="unidad")
    is_active = Column(Boolean, nullable=False, default=True)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_product_org_sku"),
    )
