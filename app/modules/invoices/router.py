from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import InvoiceCreate, InvoiceDetail, InvoiceList, InvoiceStatus, InvoiceStatusUpdate

# Router principal del módulo de facturas
router = APIRouter(prefix="/invoices", tags=["Invoices"])

_manage_invoices = require_permission(Permission.MANAGE_INVOICES)


@router.post("/", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_invoices)
):
    """
    Crear una factura.

    Requiere una secuencia fiscal activa para el tipo de comprobante; si no
    existe responde 409 con redirect_url hacia la configuración de secuencias.
    """
    service = InvoiceService(db)
    return service.create_invoice(invoice_data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=InvoiceList)
def list_invoices(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filtrar por estado"),
    document_type_id: Optional[UUID] = Query(None, description="Filtrar por tipo de comprobante"),
    client_id: Optional[UUID] = Query(None, description="Filtrar por cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_invoices)
):
    service = InvoiceService(db)
    return service.list_invoices(
        auth_context.organization_id, limit, offset, status_filter, document_type_id, client_id
    )


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_invoices)
):
    service = InvoiceService(db)
    return service.get_invoice(invoice_id, auth_context.organization_id)


@router.patch("/{invoice_id}/status", response_model=InvoiceDetail)
def update_invoice_status(
    status_data: InvoiceStatusUpdate,
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_invoices)
):
    """
    Cambiar estado de la factura

    - **paid**: marcar como pagada
    - **void**: anular (no aplica a facturas pagadas o con pagos); el motivo queda en notas
    - **issued**: reabrir una factura pagada cuyo saldo no está cubierto
    """
    service = InvoiceService(db)
    return service.update_status(invoice_id, status_data, auth_context.organization_id)
