"""
Servicio de clientes

El documento (RNC, cédula o pasaporte) es único por organización entre los
clientes no eliminados. Eliminar es soft delete: los documentos emitidos
conservan su client_id.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.clients.crud import ClientCrud
from app.modules.clients.models import Client
from app.modules.clients.schemas import (
    ClientCreate, ClientUpdate, ClientList, ClientOut, ClientStats, normalize_identification
)

logger = logging.getLogger(__name__)


class ClientService:
    """Servicio de clientes por organización"""

    def __init__(self, db: Session):
        self.db = db
        self.crud = ClientCrud(db)

    def _check_document_available(
        self, id_number: Optional[str], organization_id: UUID, exclude_id: Optional[UUID] = None
    ):
        if not id_number:
            return
        if self.crud.get_by_document(id_number, organization_id, exclude_id=exclude_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un cliente con el documento {id_number}"
            )

    def create_client(self, client_data: ClientCreate, organization_id: UUID, user_id: UUID) -> Client:
        """Crear un nuevo cliente"""
        self._check_document_available(client_data.id_number, organization_id)
        data = client_data.model_dump()
        if data.get("id_type") is not None:
            data["id_type"] = data["id_type"].value
        try:
            client = self.crud.create(data, organization_id, user_id)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error creating client: {e}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No se pudo crear el cliente: datos duplicados"
            )
        logger.info(f"Client {client.id} created in organization {organization_id}")
        return client

    def get_client(self, client_id: UUID, organization_id: UUID, include_deleted: bool = False) -> Client:
        client = self.crud.get_by_id(client_id, organization_id, include_deleted=include_deleted)
        if not client:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente no encontrado")
        return client

    def get_active_client(self, client_id: UUID, organization_id: UUID) -> Client:
        """Cliente usable en un documento nuevo: existe, activo y no eliminado"""
        client = self.crud.get_by_id(client_id, organization_id)
        if not client:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente no encontrado")
        if not client.is_active_client():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El cliente está inactivo"
            )
        return client

    def list_clients(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        include_deleted: bool = False
    ) -> ClientList:
        clients, total = self.crud.get_many(
            organization_id, limit, offset, search=search, is_active=is_active, include_deleted=include_deleted
        )
        return ClientList(
            items=[ClientOut.model_validate(c) for c in clients],
            total=total,
            limit=limit,
            offset=offset
        )

    def update_client(
        self, client_id: UUID, client_data: ClientUpdate, organization_id: UUID, user_id: UUID
    ) -> Client:
        client = self.get_client(client_id, organization_id)
        update_data = client_data.model_dump(exclude_unset=True)

        if "name" in update_data:
            if update_data["name"] is None or len(update_data["name"].strip()) < 2:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El nombre debe tener al menos 2 caracteres"
                )
            update_data["name"] = update_data["name"].strip()
        if "is_active" in update_data and update_data["is_active"] is None:
            del update_data["is_active"]

        # La identificación se valida completa con los valores resultantes
        if "id_type" in update_data or "id_number" in update_data:
            id_type = update_data.get("id_type", client.id_type)
            id_number = update_data.get("id_number", client.id_number)
            if "id_number" in update_data and "id_type" not in update_data:
                id_type = None
            try:
                id_type, id_number = normalize_identification(id_type, id_number)
            except ValueError as e:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
            self._check_document_available(id_number, organization_id, exclude_id=client.id)
            update_data["id_type"] = id_type.value if id_type is not None else None
            update_data["id_number"] = id_number

        try:
            client = self.crud.update(client, update_data, user_id)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error updating client {client_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No se pudo actualizar el cliente: datos duplicados"
            )
        return client

    def delete_client(self, client_id: UUID, organization_id: UUID, user_id: UUID):
        """Soft delete de cliente"""
        client = self.get_client(client_id, organization_id)
        self.crud.soft_delete(client, user_id)
        logger.info(f"Client {client_id} deleted by user {user_id}")

    def restore_client(self, client_id: UUID, organization_id: UUID, user_id: UUID) -> Client:
        """Restaurar cliente eliminado"""
        client = self.get_client(client_id, organization_id, include_deleted=True)
        if client.deleted_at is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El cliente no está eliminado"
            )
        if client.id_number and self.crud.get_by_document(client.id_number, organization_id, exclude_id=client.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"No se puede restaurar: existe otro cliente con el documento {client.id_number}"
            )
        return self.crud.restore(client, user_id)

    def get_stats(self, organization_id: UUID) -> ClientStats:
        base = self.db.query(func.count(Client.id)).filter(Client.organization_id == organization_id)
        not_deleted = base.filter(Client.deleted_at.is_(None))

        total = not_deleted.scalar()
        active = not_deleted.filter(Client.is_active.is_(True)).scalar()
        with_tax_id = not_deleted.filter(Client.id_number.isnot(None)).scalar()
        deleted = base.filter(Client.deleted_at.isnot(None)).scalar()

        return ClientStats(
            total_clients=total,
            active_clients=active,
            inactive_clients=total - active,
            deleted_clients=deleted,
            with_tax_id=with_tax_id
        )
