from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.schemas import InvoiceDetail
from app.modules.quotes.models import QuoteStatus
from app.modules.quotes.service import QuoteService
from app.modules.quotes.schemas import QuoteConvert, QuoteCreate, QuoteDetail, QuoteList, QuoteStatusUpdate

router = APIRouter(prefix="/quotes", tags=["Quotes"])

_manage_quotes = require_permission(Permission.MANAGE_QUOTES)
_convert_quotes = require_permission(Permission.MANAGE_QUOTES, Permission.MANAGE_INVOICES)


@router.post("/", response_model=QuoteDetail, status_code=status.HTTP_201_CREATED)
def create_quote(
    quote_data: QuoteCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_quotes)
):
    return QuoteService(db).create_quote(quote_data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=QuoteList)
def list_quotes(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    status_filter: Optional[QuoteStatus] = Query(None, alias="status"),
    client_id: Optional[UUID] = Query(None, description="Filtrar por cliente"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_quotes)
):
    return QuoteService(db).list_quotes(auth_context.organization_id, limit, offset, status_filter, client_id)


@router.get("/{quote_id}", response_model=QuoteDetail)
def get_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_quotes)
):
    return QuoteService(db).get_quote(quote_id, auth_context.organization_id)


@router.patch("/{quote_id}/status", response_model=QuoteDetail)
def update_quote_status(
    status_data: QuoteStatusUpdate,
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_quotes)
):
    return QuoteService(db).update_status(quote_id, status_data, auth_context.organization_id)


@router.post("/{quote_id}/convert", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def convert_quote_to_invoice(
    convert_data: QuoteConvert,
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_convert_quotes)
):
    """
    Convertir cotización en factura

    La factura toma su número de la secuencia activa del tipo de comprobante
    indicado; sin secuencia activa responde 409 con redirect_url. La
    cotización queda aceptada y enlazada a la factura.
    """
    return QuoteService(db).convert_to_invoice(
        quote_id, convert_data, auth_context.organization_id, auth_context.user_id
    )
