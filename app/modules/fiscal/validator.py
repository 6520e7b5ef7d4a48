"""
Validación previa a la creación de documentos.

Solo lectura: calcula si existe una secuencia utilizable y a dónde enviar al
usuario para configurarla. Quien llama decide cómo mostrarlo.
"""
import enum
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.fiscal import registry
from app.modules.fiscal.exceptions import (
    NoActiveSequenceError, SequenceExhaustedError, SequenceInactiveError
)
from app.modules.fiscal.models import FiscalDocumentType, FiscalSequence, DocumentCategory
from app.modules.fiscal.schemas import ValidationResult


class DocumentTypeState(str, enum.Enum):
    UNCONFIGURED = "unconfigured"  # Sin secuencias
    CONFIGURED = "configured"      # Con secuencias, ninguna activa
    ACTIVE = "active"              # Permite asignar números
    EXHAUSTED = "exhausted"        # Activa pero sin números disponibles


CATEGORY_LABELS = {
    DocumentCategory.INVOICE.value: "facturas",
    DocumentCategory.QUOTE.value: "cotizaciones",
}


def _as_uuid(value) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SequenceValidator:

    def __init__(self, db: Session, organization_id: UUID):
        self.db = db
        self.organization_id = organization_id
        self.redirect_url = settings.FISCAL_SEQUENCES_CONFIG_URL

    def _sequences_for(self, document_type_id: UUID) -> List[FiscalSequence]:
        return self.db.query(FiscalSequence).filter(
            FiscalSequence.organization_id == self.organization_id,
            FiscalSequence.document_type_id == document_type_id
        ).all()

    def _document_type(self, document_type_id: UUID) -> Optional[FiscalDocumentType]:
        return self.db.query(FiscalDocumentType).filter(
            FiscalDocumentType.id == document_type_id,
            FiscalDocumentType.organization_id == self.organization_id
        ).first()

    def document_type_state(self, document_type_id: Union[UUID, str]) -> DocumentTypeState:
        type_id = _as_uuid(document_type_id)
        if type_id is None:
            return DocumentTypeState.UNCONFIGURED
        sequences = self._sequences_for(type_id)
        if not sequences:
            return DocumentTypeState.UNCONFIGURED
        active = [s for s in sequences if s.is_active]
        if not active:
            return DocumentTypeState.CONFIGURED
        if all(s.is_exhausted for s in active):
            return DocumentTypeState.EXHAUSTED
        return DocumentTypeState.ACTIVE

    def _invalid(self, message: str, missing: List[str]) -> ValidationResult:
        return ValidationResult(
            is_valid=False,
            message=message,
            missing_sequences=missing,
            redirect_url=self.redirect_url,
        )

    def validate_specific_document_type(self, document_type_id: Union[UUID, str, None]) -> ValidationResult:
        missing = [str(document_type_id)] if document_type_id else ["document_type"]
        type_id = _as_uuid(document_type_id)
        if type_id is None:
            return self._invalid("Debe seleccionar un tipo de documento", missing)

        document_type = self._document_type(type_id)
        if document_type is None:
            return self._invalid("El tipo de documento no existe en esta organización", missing)

        sequences = self._sequences_for(type_id)
        active = [s for s in sequences if s.is_active]
        if not sequences:
            return self._invalid(
                f"No hay secuencia fiscal configurada para {document_type.name}", missing
            )
        if not active:
            return self._invalid(
                f"La secuencia fiscal de {document_type.name} está inactiva", missing
            )
        if len(active) > 1:
            return self._invalid(
                f"Hay más de una secuencia activa para {document_type.name}", missing
            )
        if active[0].is_exhausted:
            return self._invalid(
                f"La secuencia fiscal de {document_type.name} alcanzó su número máximo", missing
            )
        return ValidationResult(
            is_valid=True,
            message=f"Secuencia fiscal de {document_type.name} configurada correctamente",
            missing_sequences=[],
            redirect_url=None,
        )

    def require_valid(self, document_type_id: Union[UUID, str]) -> ValidationResult:
        """
        Igual que validate_specific_document_type pero bloquea con el error
        tipado que corresponde al estado del tipo de documento.
        """
        result = self.validate_specific_document_type(document_type_id)
        if result.is_valid:
            return result
        state = self.document_type_state(document_type_id)
        if state == DocumentTypeState.EXHAUSTED:
            raise SequenceExhaustedError(result.message, redirect_url=self.redirect_url)
        if state == DocumentTypeState.CONFIGURED:
            raise SequenceInactiveError(result.message, redirect_url=self.redirect_url)
        raise NoActiveSequenceError(result.message, redirect_url=self.redirect_url)

    def _validate_category(self, category: str) -> ValidationResult:
        label = CATEGORY_LABELS.get(category, category)
        document_types = registry.list_document_types(self.db, self.organization_id, category=category)
        for document_type in document_types:
            if self.validate_specific_document_type(document_type.id).is_valid:
                return ValidationResult(
                    is_valid=True,
                    message=f"Secuencias de {label} configuradas",
                    missing_sequences=[],
                    redirect_url=None,
                )
        return self._invalid(
            f"Debe configurar al menos una secuencia fiscal activa para {label}",
            [category]
        )

    def validate_invoice_sequences(self) -> ValidationResult:
        return self._validate_category(DocumentCategory.INVOICE.value)

    def validate_quote_sequences(self) -> ValidationResult:
        return self._validate_category(DocumentCategory.QUOTE.value)

    def validate_all_sequences(self) -> ValidationResult:
        results = [self.validate_invoice_sequences(), self.validate_quote_sequences()]
        missing = [m for result in results for m in result.missing_sequences]
        if not missing:
            return ValidationResult(
                is_valid=True,
                message="Todas las secuencias fiscales están configuradas",
                missing_sequences=[],
                redirect_url=None,
            )
        return self._invalid(
            " ".join(r.message for r in results if not r.is_valid),
            missing
        )
