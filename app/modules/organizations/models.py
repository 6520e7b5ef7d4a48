from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import TimestampMixin
import uuid

class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    slug = Column(String(160), unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String, nullable=True)
    tax_id = Column(String(20), nullable=True)  # RNC
    plan = Column(String(20), nullable=False, default="free")  # free, pro, enterprise
    is_active = Column(Boolean, default=True)

    memberships = relationship("UserOrganization", back_populates="organization")
