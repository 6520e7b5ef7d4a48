from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.service import AuthService
from app.modules.auth.dependencies import get_current_user, get_auth_context
from app.modules.auth.models import User
from app.modules.auth.schemas import (
    UserCreate, UserOut, TokenResponse, ContextTokenResponse,
    OrganizationSelectionRequest, AuthContext, PasswordChange
)

auth_router = APIRouter()

@auth_router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar nuevo usuario.
    """
    return AuthService(db).create_user(user_data)

@auth_router.post("/login", response_model=TokenResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Login de usuario. Retorna token de acceso y lista de organizaciones.
    """
    return AuthService(db).login(form_data.username, form_data.password)

@auth_router.post("/select-organization", response_model=ContextTokenResponse)
def select_organization(
    selection_data: OrganizationSelectionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Seleccionar organización y obtener token de contexto.
    """
    return AuthService(db).select_organization(current_user.id, selection_data.organization_id)

@auth_router.get("/me", response_model=UserOut)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Obtener información del usuario actual.
    """
    return current_user

@auth_router.get("/context", response_model=AuthContext)
def get_auth_context_info(auth_context: AuthContext = Depends(get_auth_context)):
    """
    Obtener contexto de autenticación completo.
    """
    return auth_context

@auth_router.post("/change-password", response_model=dict)
def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Cambiar la contraseña del usuario actual.
    """
    AuthService(db).change_password(current_user, password_data.current_password, password_data.new_password)
    return {"message": "Contraseña actualizada exitosamente"}
