"""
Servicio de organizaciones (tenants)

- Alta de organización con membresía de propietario y tipos de comprobante por defecto
- Miembros: listado, cambio de rol y baja
- Invitaciones por email y aceptación
"""
import logging
import re
import unicodedata
from datetime import datetime, timedelta, timezone
from typing import List
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.modules.auth.models import User, UserOrganization, OrganizationInvitation
from app.modules.auth.permissions import Role, can_manage_member
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import hash_password, generate_secure_token
from app.modules.email.tasks import send_invitation_email_task
from app.modules.fiscal.registry import ensure_default_document_types
from app.modules.organizations.models import Organization
from app.modules.organizations.schemas import (
    OrganizationCreate, OrganizationUpdate, OrganizationWithRole, OrganizationOut,
    MemberOut, InvitationCreate, InvitationAccept, InvitationAcceptOut
)

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()
    return value or "organizacion"


class OrganizationService:

    def __init__(self, db: Session):
        self.db = db

    def _unique_slug(self, name: str) -> str:
        base = slugify(name)
        slug = base
        counter = 2
        while self.db.query(Organization.id).filter(Organization.slug == slug).first():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    def _get_organization(self, organization_id: UUID) -> Organization:
        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organización no encontrada")
        return organization

    def create_organization(self, data: OrganizationCreate, owner: User) -> OrganizationWithRole:
        """
        Crear organización. Quien la crea queda como propietario y se
        registran los tipos de comprobante por defecto.
        """
        organization = Organization(
            name=data.name.strip(),
            slug=self._unique_slug(data.name),
            email=data.email,
            phone=data.phone,
            address=data.address,
            tax_id=data.tax_id,
        )
        self.db.add(organization)
        self.db.flush()

        self.db.add(UserOrganization(
            user_id=owner.id,
            organization_id=organization.id,
            role=Role.OWNER.value,
            is_active=True
        ))
        ensure_default_document_types(self.db, organization.id, commit=False)

        self.db.commit()
        self.db.refresh(organization)
        logger.info(f"Organization {organization.id} created by user {owner.id}")

        return OrganizationWithRole(
            **OrganizationOut.model_validate(organization).model_dump(),
            user_role=Role.OWNER.value
        )

    def list_user_organizations(self, user_id: UUID) -> List[OrganizationWithRole]:
        memberships = self.db.query(UserOrganization).options(
            selectinload(UserOrganization.organization)
        ).filter(
            UserOrganization.user_id == user_id,
            UserOrganization.is_active == True
        ).all()
        return [
            OrganizationWithRole(
                **OrganizationOut.model_validate(m.organization).model_dump(),
                user_role=m.role
            )
            for m in memberships if m.organization.is_active
        ]

    def update_organization(self, organization_id: UUID, data: OrganizationUpdate) -> Organization:
        organization = self._get_organization(organization_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(organization, field, value)
        self.db.commit()
        self.db.refresh(organization)
        return organization

    # ===== MIEMBROS =====

    def list_members(self, organization_id: UUID) -> List[MemberOut]:
        memberships = self.db.query(UserOrganization).options(
            selectinload(UserOrganization.user)
        ).filter(
            UserOrganization.organization_id == organization_id,
            UserOrganization.is_active == True
        ).order_by(UserOrganization.joined_at).all()
        return [
            MemberOut(
                user_id=m.user_id,
                email=m.user.email,
                full_name=m.user.full_name,
                role=m.role,
                is_active=m.is_active,
                joined_at=m.joined_at
            )
            for m in memberships
        ]

    def _get_membership(self, organization_id: UUID, user_id: UUID) -> UserOrganization:
        membership = self.db.query(UserOrganization).options(
            selectinload(UserOrganization.user)
        ).filter(
            UserOrganization.organization_id == organization_id,
            UserOrganization.user_id == user_id,
            UserOrganization.is_active == True
        ).first()
        if not membership:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Miembro no encontrado")
        return membership

    def _check_can_manage(self, auth_context: AuthContext, membership: UserOrganization) -> None:
        if membership.user_id == auth_context.user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No puedes modificar tu propia membresía"
            )
        if not can_manage_member(auth_context.user_role, membership.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permisos para gestionar a este miembro"
            )

    def _ensure_other_owner(self, organization_id: UUID, membership: UserOrganization) -> None:
        if membership.role != Role.OWNER.value:
            return
        owners = self.db.query(UserOrganization).filter(
            UserOrganization.organization_id == organization_id,
            UserOrganization.role == Role.OWNER.value,
            UserOrganization.is_active == True
        ).count()
        if owners <= 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La organización debe tener al menos un propietario"
            )

    def update_member_role(self, auth_context: AuthContext, user_id: UUID, role: str) -> MemberOut:
        membership = self._get_membership(auth_context.organization_id, user_id)
        self._check_can_manage(auth_context, membership)
        if not can_manage_member(auth_context.user_role, role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No puedes asignar este rol"
            )
        if role != Role.OWNER.value:
            self._ensure_other_owner(auth_context.organization_id, membership)

        membership.role = role
        self.db.commit()
        logger.info(f"Member {user_id} role changed to {role} in organization {auth_context.organization_id}")
        return MemberOut(
            user_id=membership.user_id,
            email=membership.user.email,
            full_name=membership.user.full_name,
            role=membership.role,
            is_active=membership.is_active,
            joined_at=membership.joined_at
        )

    def remove_member(self, auth_context: AuthContext, user_id: UUID) -> None:
        membership = self._get_membership(auth_context.organization_id, user_id)
        self._check_can_manage(auth_context, membership)
        self._ensure_other_owner(auth_context.organization_id, membership)

        membership.is_active = False
        self.db.commit()
        logger.info(f"Member {user_id} removed from organization {auth_context.organization_id}")

    # ===== INVITACIONES =====

    def invite_member(self, auth_context: AuthContext, data: InvitationCreate) -> OrganizationInvitation:
        """Crear (o renovar) una invitación y enviar el email de forma asíncrona."""
        if not can_manage_member(auth_context.user_role, data.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No puedes invitar usuarios con este rol"
            )

        organization_id = auth_context.organization_id
        email = data.email.lower()

        existing_member = self.db.query(UserOrganization).join(User).filter(
            UserOrganization.organization_id == organization_id,
            UserOrganization.is_active == True,
            User.email == email
        ).first()
        if existing_member:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Este usuario ya pertenece a la organización"
            )

        token = generate_secure_token()
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.INVITATION_EXPIRE_DAYS)

        invitation = self.db.query(OrganizationInvitation).filter(
            OrganizationInvitation.organization_id == organization_id,
            OrganizationInvitation.invitee_email == email
        ).first()
        if invitation:
            invitation.invited_by_id = auth_context.user_id
            invitation.role = data.role
            invitation.token = token
            invitation.expires_at = expires_at
            invitation.is_accepted = False
            invitation.accepted_at = None
        else:
            invitation = OrganizationInvitation(
                organization_id=organization_id,
                invited_by_id=auth_context.user_id,
                invitee_email=email,
                role=data.role,
                token=token,
                expires_at=expires_at
            )
            self.db.add(invitation)
        self.db.commit()
        self.db.refresh(invitation)

        organization = self._get_organization(organization_id)
        inviter = self.db.query(User).filter(User.id == auth_context.user_id).first()

        send_invitation_email_task.delay(
            invitee_email=email,
            inviter_name=inviter.full_name,
            organization_name=organization.name,
            invitation_token=token,
            role=data.role
        )
        logger.info(f"Invitation sent to {email} for organization {organization_id}")
        return invitation

    def accept_invitation(self, data: InvitationAccept) -> InvitationAcceptOut:
        """
        Aceptar invitación. Si el email no tiene cuenta se crea con la
        contraseña y el nombre recibidos.
        """
        invitation = self.db.query(OrganizationInvitation).options(
            selectinload(OrganizationInvitation.organization)
        ).filter(
            OrganizationInvitation.token == data.token,
            OrganizationInvitation.is_accepted == False,
            OrganizationInvitation.expires_at > datetime.now(timezone.utc)
        ).first()
        if not invitation:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invitación inválida o expirada"
            )

        user = self.db.query(User).filter(User.email == invitation.invitee_email).first()
        if user is None:
            if not data.password or not data.full_name:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Se requieren contraseña y nombre para crear la cuenta"
                )
            user = User(
                email=invitation.invitee_email,
                password=hash_password(data.password),
                full_name=data.full_name.strip(),
                is_active=True
            )
            self.db.add(user)
            self.db.flush()

        membership = self.db.query(UserOrganization).filter(
            UserOrganization.user_id == user.id,
            UserOrganization.organization_id == invitation.organization_id
        ).first()
        if membership:
            membership.role = invitation.role
            membership.is_active = True
        else:
            self.db.add(UserOrganization(
                user_id=user.id,
                organization_id=invitation.organization_id,
                role=invitation.role,
                is_active=True
            ))

        invitation.is_accepted = True
        invitation.accepted_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info(f"User {user.id} joined organization {invitation.organization_id}")
        return InvitationAcceptOut(
            user_id=user.id,
            organization_id=invitation.organization_id,
            organization_name=invitation.organization.name,
            role=invitation.role
        )
