"""
CRUD operations para el módulo de Clientes

Todas las operaciones están scoped por organization_id.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.modules.clients.models import Client


class ClientCrud:
    """Operaciones de base de datos para clientes"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, client_data: dict, organization_id: UUID, user_id: UUID) -> Client:
        client = Client(
            **client_data,
            organization_id=organization_id,
            created_by=user_id,
            updated_by=user_id
        )
        self.db.add(client)
        self.db.commit()
        self.db.refresh(client)
        return client

    def get_by_id(self, client_id: UUID, organization_id: UUID, include_deleted: bool = False) -> Optional[Client]:
        query = self.db.query(Client).filter(
            Client.id == client_id,
            Client.organization_id == organization_id
        )
        if not include_deleted:
            query = query.filter(Client.deleted_at.is_(None))
        return query.first()

    def get_by_document(
        self, id_number: str, organization_id: UUID, exclude_id: Optional[UUID] = None
    ) -> Optional[Client]:
        query = self.db.query(Client).filter(
            Client.organization_id == organization_id,
            Client.id_number == id_number,
            Client.deleted_at.is_(None)
        )
        if exclude_id:
            query = query.filter(Client.id != exclude_id)
        return query.first()

    def get_many(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        include_deleted: bool = False
    ) -> Tuple[List[Client], int]:
        query = self.db.query(Client).filter(Client.organization_id == organization_id)

        if not include_deleted:
            query = query.filter(Client.deleted_at.is_(None))

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                or_(
                    Client.name.ilike(search_term),
                    Client.email.ilike(search_term),
                    Client.id_number.ilike(search_term)
                )
            )

        if is_active is not None:
            query = query.filter(Client.is_active == is_active)

        total = query.count()
        clients = query.order_by(Client.name).offset(offset).limit(limit).all()
        return clients, total

    def update(self, client: Client, update_data: dict, user_id: UUID) -> Client:
        for field, value in update_data.items():
            if hasattr(client, field):
                setattr(client, field, value)
        client.updated_by = user_id

        self.db.commit()
        self.db.refresh(client)
        return client

    def soft_delete(self, client: Client, user_id: UUID) -> Client:
        client.deleted_at = datetime.now(timezone.utc)
        client.is_active = False
        client.updated_by = user_id

        self.db.commit()
        self.db.refresh(client)
        return client

    def restore(self, client: Client, user_id: UUID) -> Client:
        client.deleted_at = None
        client.is_active = True
        client.updated_by = user_id

        self.db.commit()
        self.db.refresh(client)
        return client
