from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import get_current_user, require_organization, require_permission
from app.modules.auth.models import User
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.organizations.service import OrganizationService
from app.modules.organizations.schemas import (
    OrganizationCreate, OrganizationUpdate, OrganizationOut, OrganizationWithRole,
    MemberOut, MemberRoleUpdate, InvitationCreate, InvitationOut,
    InvitationAccept, InvitationAcceptOut
)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("/", response_model=OrganizationWithRole, status_code=status.HTTP_201_CREATED)
def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crear organización. El usuario actual queda como propietario.
    """
    return OrganizationService(db).create_organization(data, current_user)


@router.get("/mine", response_model=List[OrganizationWithRole])
def list_my_organizations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrganizationService(db).list_user_organizations(current_user.id)


@router.patch("/current", response_model=OrganizationOut)
def update_current_organization(
    data: OrganizationUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_permission(Permission.MANAGE_ORGANIZATION))
):
    return OrganizationService(db).update_organization(auth_context.organization_id, data)


@router.get("/current/members", response_model=List[MemberOut])
def list_members(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return OrganizationService(db).list_members(auth_context.organization_id)


@router.patch("/current/members/{user_id}", response_model=MemberOut)
def update_member_role(
    user_id: UUID,
    data: MemberRoleUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_permission(Permission.MANAGE_MEMBERS))
):
    return OrganizationService(db).update_member_role(auth_context, user_id, data.role)


@router.delete("/current/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    user_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_permission(Permission.MANAGE_MEMBERS))
):
    OrganizationService(db).remove_member(auth_context, user_id)


@router.post("/current/invitations", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
def invite_member(
    data: InvitationCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_permission(Permission.INVITE_MEMBERS))
):
    """
    Invitar a un usuario por email. Los administradores solo pueden invitar miembros.
    """
    return OrganizationService(db).invite_member(auth_context, data)


@router.post("/invitations/accept", response_model=InvitationAcceptOut)
def accept_invitation(data: InvitationAccept, db: Session = Depends(get_db)):
    return OrganizationService(db).accept_invitation(data)
