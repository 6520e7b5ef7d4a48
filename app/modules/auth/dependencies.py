"""
Dependencias de autenticación para FastAPI.
"""
from uuid import UUID
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, selectinload
import jwt

from app.database.database import get_db
from app.modules.auth.models import User, UserOrganization
from app.modules.auth.schemas import AuthContext, UserOrganizationOut
from app.modules.auth.permissions import Permission, has_all_permissions
from app.modules.auth.utils import decode_token

# Security scheme
security = HTTPBearer()

class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def _decode(credentials: HTTPAuthorizationCredentials) -> dict:
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )
        try:
            payload = decode_token(credentials.credentials)
        except jwt.PyJWTError:
            raise credentials_exception
        if payload.get("sub") is None:
            raise credentials_exception
        return payload

    @staticmethod
    def _load_user(db: Session, user_id) -> User:
        try:
            user_uuid = UUID(str(user_id))
        except ValueError:
            user_uuid = None
        user = None
        if user_uuid is not None:
            user = db.query(User).options(
                selectinload(User.memberships).selectinload(UserOrganization.organization)
            ).filter(User.id == user_uuid).first()

        if user is None or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No se pudieron validar las credenciales",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user

    @staticmethod
    def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Obtener usuario actual desde token JWT.
        No requiere organización (para endpoints generales).
        """
        payload = AuthDependencies._decode(credentials)
        return AuthDependencies._load_user(db, payload["sub"])

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación con organización.
        La organización sale del token de contexto o del header X-Organization-ID;
        la membresía y el rol siempre se leen de la base de datos.
        """
        payload = AuthDependencies._decode(credentials)
        user = AuthDependencies._load_user(db, payload["sub"])

        organization_id = None
        if payload.get("type") == "context" and payload.get("organization_id"):
            organization_id = payload["organization_id"]
        else:
            organization_id = getattr(request.state, "organization_id", None)

        user_role = None
        if organization_id is not None:
            try:
                organization_id = UUID(str(organization_id))
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="ID de organización inválido"
                )
            membership = next(
                (m for m in user.memberships
                 if m.organization_id == organization_id and m.is_active),
                None
            )
            if membership is None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="No tienes acceso a esta organización"
                )
            user_role = membership.role

        organizations = [
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

        return AuthContext(
            user_id=user.id,
            organization_id=organization_id,
            user_role=user_role,
            organizations=organizations
        )

# Instancias de dependencias
get_current_user = AuthDependencies.get_current_user
get_auth_context = AuthDependencies.get_auth_context


def require_organization(auth_context: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Exige que la petición tenga una organización seleccionada."""
    if not auth_context.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Se requiere seleccionar una organización"
        )
    return auth_context


def require_permission(*permissions: Permission):
    """
    Dependencia para requerir uno o varios permisos de la tabla de roles.
    Con varios permisos el rol debe tenerlos todos.
    """
    def permission_checker(auth_context: AuthContext = Depends(require_organization)) -> AuthContext:
        if not has_all_permissions(auth_context.user_role, permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permiso requerido: {', '.join(p.value for p in permissions)}"
            )
        return auth_context
    return permission_checker
