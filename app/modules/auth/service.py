import logging
from datetime import datetime, timezone
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.modules.auth.models import User, UserOrganization
from app.modules.auth.schemas import (
    UserCreate, UserOut, TokenResponse, ContextTokenResponse, UserOrganizationOut
)
from app.modules.auth.utils import (
    hash_password, verify_password, create_access_token, create_context_token
)
from app.modules.auth.permissions import get_permissions
from app.core.config import settings

logger = logging.getLogger(__name__)

class AuthService:
    """
    Servicio de autenticación multi-organización.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user_data: UserCreate) -> User:
        """Registrar usuario nuevo (activo desde el registro)."""
        email = user_data.email.lower()
        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Este email ya está registrado"
            )

        user = User(
            email=email,
            password=hash_password(user_data.password),
            full_name=user_data.full_name.strip(),
            is_active=True
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User registered: {user.id}")
        return user

    def _memberships_out(self, user: User) -> list[UserOrganizationOut]:
        return [
            UserOrganizationOut(
                id=m.id,
                organization_id=m.organization_id,
                role=m.role,
                is_active=m.is_active,
                joined_at=m.joined_at,
                organization_name=m.organization.name
            )
            for m in user.memberships if m.is_active
        ]

    def login(self, email: str, password: str) -> TokenResponse:
        """
        Login de usuario. Retorna token de acceso (sin organización) y la lista
        de organizaciones a las que pertenece.
        """
        user = self.db.query(User).options(
            selectinload(User.memberships).selectinload(UserOrganization.organization)
        ).filter(User.email == email.lower()).first()

        if not user or not verify_password(password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Credenciales incorrectas"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cuenta inactiva"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()

        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "user_name": user.full_name
        }
        access_token = create_access_token(token_data)

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user),
            organizations=self._memberships_out(user)
        )

    def select_organization(self, user_id: UUID, organization_id: UUID) -> ContextTokenResponse:
        """
        Cambiar de organización: genera un token de contexto con organization_id y rol.
        """
        membership = self.db.query(UserOrganization).options(
            selectinload(UserOrganization.organization),
            selectinload(UserOrganization.user)
        ).filter(
            UserOrganization.user_id == user_id,
            UserOrganization.organization_id == organization_id,
            UserOrganization.is_active == True
        ).first()

        if not membership or not membership.organization.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes acceso a esta organización"
            )

        token_data = {
            "sub": str(user_id),
            "email": membership.user.email,
            "user_name": membership.user.full_name,
            "organization_id": str(organization_id),
            "user_role": membership.role
        }

        return ContextTokenResponse(
            access_token=create_context_token(token_data),
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            organization_id=organization_id,
            organization_name=membership.organization.name,
            user_role=membership.role,
            permissions=sorted(p.value for p in get_permissions(membership.role))
        )

    def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """Cambiar contraseña verificando la actual."""
        if not verify_password(current_password, user.password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La contraseña actual no es correcta"
            )
        if current_password == new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La nueva contraseña debe ser diferente a la actual"
            )

        user.password = hash_password(new_password)
        user.password_changed_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info(f"Password changed for user {user.id}")
        return user
