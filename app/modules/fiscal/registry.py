"""
Registro de tipos de comprobante fiscal por organización.
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.fiscal.exceptions import DocumentTypeNotFoundError, SequenceConflictError
from app.modules.fiscal.models import FiscalDocumentType, DocumentCategory
from app.modules.fiscal.schemas import DocumentTypeCreate

logger = logging.getLogger(__name__)


# Comprobantes usados en República Dominicana más la cotización interna
DEFAULT_DOCUMENT_TYPES = (
    {"code": "B01", "name": "Factura de Crédito Fiscal",
     "description": "Para contribuyentes que requieren crédito fiscal",
     "category": DocumentCategory.INVOICE, "requires_tax_id": True},
    {"code": "B02", "name": "Factura de Consumo",
     "description": "Para consumidores finales",
     "category": DocumentCategory.INVOICE, "requires_tax_id": False},
    {"code": "B04", "name": "Nota de Crédito",
     "description": "Para anular o modificar comprobantes emitidos",
     "category": DocumentCategory.CREDIT_NOTE, "requires_tax_id": False},
    {"code": "B15", "name": "Factura Gubernamental",
     "description": "Para ventas a entidades del gobierno",
     "category": DocumentCategory.INVOICE, "requires_tax_id": True},
    {"code": "COT", "name": "Cotización",
     "description": "Cotizaciones a clientes",
     "category": DocumentCategory.QUOTE, "requires_tax_id": False},
)


def list_document_types(
    db: Session,
    organization_id: UUID,
    category: Optional[str] = None,
    include_inactive: bool = False,
) -> List[FiscalDocumentType]:
    query = db.query(FiscalDocumentType).filter(FiscalDocumentType.organization_id == organization_id)
    if category:
        query = query.filter(FiscalDocumentType.category == category)
    if not include_inactive:
        query = query.filter(FiscalDocumentType.is_active == True)
    return query.order_by(FiscalDocumentType.code).all()


def get_document_type(db: Session, organization_id: UUID, document_type_id: UUID) -> FiscalDocumentType:
    document_type = db.query(FiscalDocumentType).filter(
        FiscalDocumentType.id == document_type_id,
        FiscalDocumentType.organization_id == organization_id,
    ).first()
    if not document_type:
        raise DocumentTypeNotFoundError("Tipo de documento no encontrado")
    return document_type


def create_document_type(db: Session, organization_id: UUID, data: DocumentTypeCreate) -> FiscalDocumentType:
    code = data.code.strip().upper()
    exists = db.query(FiscalDocumentType.id).filter(
        FiscalDocumentType.organization_id == organization_id,
        FiscalDocumentType.code == code,
    ).first()
    if exists:
        raise SequenceConflictError(f"Ya existe un tipo de documento con código {code}")

    document_type = FiscalDocumentType(
        organization_id=organization_id,
        code=code,
        name=data.name,
        description=data.description,
        category=data.category,
        requires_tax_id=data.requires_tax_id,
    )
    db.add(document_type)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SequenceConflictError(f"Ya existe un tipo de documento con código {code}")
    db.refresh(document_type)
    return document_type


def ensure_default_document_types(db: Session, organization_id: UUID, commit: bool = True) -> List[FiscalDocumentType]:
    """
    Crea los tipos de comprobante por defecto que falten. Idempotente.
    """
    existing = {
        code for (code,) in db.query(FiscalDocumentType.code).filter(
            FiscalDocumentType.organization_id == organization_id
        )
    }
    created = []
    for item in DEFAULT_DOCUMENT_TYPES:
        if item["code"] in existing:
            continue
        document_type = FiscalDocumentType(
            organization_id=organization_id,
            code=item["code"],
            name=item["name"],
            description=item["description"],
            category=item["category"].value,
            requires_tax_id=item["requires_tax_id"],
        )
        db.add(document_type)
        created.append(document_type)

    if created:
        logger.info(f"Seeded {len(created)} document types for organization {organization_id}")
        if commit:
            db.commit()
        else:
            db.flush()
    return created
