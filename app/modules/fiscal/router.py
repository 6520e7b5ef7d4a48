"""
Endpoints de secuencias fiscales

- Tipos de documento: listado y creación
- Secuencias: CRUD, reinicio, estadísticas, vista previa y validación de configuración
- Asignación del siguiente número fiscal
- Validación previa a la creación de documentos
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_organization, require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.fiscal import registry
from app.modules.fiscal.service import SequenceManager, preview_fiscal_number, validate_sequence_config
from app.modules.fiscal.validator import SequenceValidator
from app.modules.fiscal.schemas import (
    DocumentTypeCreate, DocumentTypeOut,
    SequenceConfig, SequenceCreate, SequenceUpdate, SequenceOut, SequenceStats, SequenceResetOut,
    PreviewRequest, PreviewResponse, ConfigValidationResponse,
    AllocationRequest, AllocationResult, ValidationResult, DocumentTypeStateOut
)

router = APIRouter(prefix="/fiscal", tags=["Fiscal"])

_manage_fiscal = require_permission(Permission.MANAGE_FISCAL_DOCUMENTS)


# ===== DOCUMENT TYPES =====

@router.get("/document-types", response_model=List[DocumentTypeOut])
def list_document_types(
    category: Optional[str] = Query(None, description="invoice, credit_note o quote"),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return registry.list_document_types(db, auth_context.organization_id, category, include_inactive)


@router.post("/document-types", response_model=DocumentTypeOut, status_code=status.HTTP_201_CREATED)
def create_document_type(
    data: DocumentTypeCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_fiscal)
):
    return registry.create_document_type(db, auth_context.organization_id, data)


# ===== SEQUENCES =====

@router.get("/sequences", response_model=List[SequenceOut])
def list_sequences(
    include_inactive: bool = Query(True),
    document_type_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceManager(db).list_sequences(auth_context.organization_id, include_inactive, document_type_id)


@router.post("/sequences", response_model=SequenceOut, status_code=status.HTTP_201_CREATED)
def create_sequence(
    data: SequenceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_fiscal)
):
    """
    Crear una secuencia fiscal. Solo puede haber una activa por tipo de documento.
    """
    return SequenceManager(db).create_from_schema(auth_context.organization_id, data)


@router.post("/sequences/preview", response_model=PreviewResponse)
def preview_sequence_number(
    data: PreviewRequest,
    auth_context: AuthContext = Depends(require_organization)
):
    return PreviewResponse(
        formatted_number=preview_fiscal_number(data.prefix, data.suffix, data.number, data.padding_length)
    )


@router.post("/sequences/validate-config", response_model=ConfigValidationResponse)
def validate_config(
    config: SequenceConfig,
    auth_context: AuthContext = Depends(require_organization)
):
    errors = validate_sequence_config(config)
    return ConfigValidationResponse(is_valid=not errors, errors=errors)


@router.get("/sequences/{sequence_id}", response_model=SequenceOut)
def get_sequence(
    sequence_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceManager(db).get_sequence(auth_context.organization_id, sequence_id)


@router.patch("/sequences/{sequence_id}", response_model=SequenceOut)
def update_sequence(
    sequence_id: UUID,
    patch: SequenceUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_fiscal)
):
    return SequenceManager(db).update_sequence(auth_context.organization_id, sequence_id, patch)


@router.delete("/sequences/{sequence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sequence(
    sequence_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_fiscal)
):
    SequenceManager(db).delete_sequence(auth_context.organization_id, sequence_id)


@router.post("/sequences/{sequence_id}/reset", response_model=SequenceResetOut)
def reset_sequence(
    sequence_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_fiscal)
):
    """
    Reiniciar el contador al número inicial.

    Acción destructiva: los próximos documentos pueden repetir números ya emitidos.
    """
    return SequenceManager(db).reset_sequence(
        auth_context.organization_id, sequence_id, reset_by=auth_context.user_id
    )


@router.get("/sequences/{sequence_id}/stats", response_model=SequenceStats)
def get_sequence_stats(
    sequence_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceManager(db).get_sequence_stats(auth_context.organization_id, sequence_id)


# ===== ALLOCATION =====

@router.post("/allocate", response_model=AllocationResult)
def allocate_number(
    data: AllocationRequest,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_permission(Permission.MANAGE_INVOICES))
):
    return SequenceManager(db).allocate(auth_context.organization_id, data.document_type_id)


# ===== VALIDATION =====

@router.get("/validation/document-types/{document_type_id}", response_model=ValidationResult)
def validate_document_type(
    document_type_id: str,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceValidator(db, auth_context.organization_id).validate_specific_document_type(document_type_id)


@router.get("/validation/document-types/{document_type_id}/state", response_model=DocumentTypeStateOut)
def document_type_state(
    document_type_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    state = SequenceValidator(db, auth_context.organization_id).document_type_state(document_type_id)
    return DocumentTypeStateOut(document_type_id=document_type_id, state=state.value)


@router.get("/validation/invoices", response_model=ValidationResult)
def validate_invoice_sequences(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceValidator(db, auth_context.organization_id).validate_invoice_sequences()


@router.get("/validation/quotes", response_model=ValidationResult)
def validate_quote_sequences(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceValidator(db, auth_context.organization_id).validate_quote_sequences()


@router.get("/validation/all", response_model=ValidationResult)
def validate_all_sequences(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_organization)
):
    return SequenceValidator(db, auth_context.organization_id).validate_all_sequences()
