"""
Router para el módulo de Clientes

Todos los endpoints requieren el permiso manage_clients y están scoped por
la organización del contexto.
"""
from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.clients.service import ClientService
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientOut, ClientList, ClientStats

router = APIRouter(
    prefix="/clients",
    tags=["Clients"],
    responses={404: {"description": "Not found"}}
)

_manage_clients = require_permission(Permission.MANAGE_CLIENTS)


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    client_data: ClientCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    """
    Crear un cliente

    - **name**: Nombre o razón social (requerido)
    - **id_number**: RNC (9 dígitos) o cédula (11 dígitos); único por organización
    """
    service = ClientService(db)
    return service.create_client(client_data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=ClientList)
def list_clients(
    limit: int = Query(100, ge=1, le=500, description="Número máximo de clientes a retornar"),
    offset: int = Query(0, ge=0, description="Número de clientes a omitir"),
    search: Optional[str] = Query(None, description="Búsqueda por nombre, email o documento"),
    is_active: Optional[bool] = Query(None, description="Filtrar por estado activo"),
    include_deleted: bool = Query(False, description="Incluir clientes eliminados"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    service = ClientService(db)
    return service.list_clients(
        auth_context.organization_id, limit, offset, search, is_active, include_deleted
    )


@router.get("/stats", response_model=ClientStats)
def get_client_stats(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    service = ClientService(db)
    return service.get_stats(auth_context.organization_id)


@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    service = ClientService(db)
    return service.get_client(client_id, auth_context.organization_id)


@router.patch("/{client_id}", response_model=ClientOut)
def update_client(
    client_data: ClientUpdate,
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    service = ClientService(db)
    return service.update_client(client_id, client_data, auth_context.organization_id, auth_context.user_id)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    """Eliminar cliente (soft delete). Sus facturas y cotizaciones no cambian."""
    service = ClientService(db)
    service.delete_client(client_id, auth_context.organization_id, auth_context.user_id)


@router.post("/{client_id}/restore", response_model=ClientOut)
def restore_client(
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_clients)
):
    service = ClientService(db)
    return service.restore_client(client_id, auth_context.organization_id, auth_context.user_id)
