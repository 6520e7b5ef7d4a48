from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from datetime import datetime, timezone
from app.database.database import Base
from app.common.mixins import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    memberships = relationship("UserOrganization", back_populates="user", cascade="all, delete-orphan")
    invitations_sent = relationship("OrganizationInvitation", foreign_keys="OrganizationInvitation.invited_by_id", back_populates="invited_by")

class UserOrganization(Base, TimestampMixin):
    __tablename__ = "user_organizations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    role = Column(String, nullable=False, default="member")  # owner, admin, member
    is_active = Column(Boolean, default=True)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )

class OrganizationInvitation(Base, TimestampMixin):
    __tablename__ = "organization_invitations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    invited_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    invitee_email = Column(String, nullable=False)
    role = Column(String, nullable=False, default="member")
    token = Column(String, unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    is_accepted = Column(Boolean, default=False)

    # Relationships
    organization = relationship("Organization")
    invited_by = relationship("User", foreign_keys=[invited_by_id], back_populates="invitations_sent")

    __table_args__ = (
        UniqueConstraint("organization_id", "invitee_email", name="uq_organization_invitee"),
    )
