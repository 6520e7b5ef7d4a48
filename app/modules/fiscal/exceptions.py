"""
Errores tipados del módulo fiscal.

Cada error lleva el código HTTP con el que se expone; app.main registra un
único handler para FiscalError.
"""
from typing import Any, Dict, List, Optional


class FiscalError(Exception):
    status_code = 400
    kind = "fiscal_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": self.kind, **self.extra}


class SequenceValidationError(FiscalError):
    """Configuración de secuencia inválida (padding, número inicial, longitudes)."""
    status_code = 422
    kind = "validation_error"

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors), errors=errors)
        self.errors = errors


class SequenceConflictError(FiscalError):
    """Secuencia activa duplicada, código duplicado o borrado con documentos emitidos."""
    status_code = 409
    kind = "conflict_error"


class SequenceNotFoundError(FiscalError):
    status_code = 404
    kind = "sequence_not_found"


class DocumentTypeNotFoundError(FiscalError):
    status_code = 404
    kind = "document_type_not_found"


class NoActiveSequenceError(FiscalError):
    """No hay secuencia activa para el tipo de documento en la organización."""
    status_code = 409
    kind = "no_active_sequence"

    def __init__(self, message: str, redirect_url: Optional[str] = None):
        super().__init__(message, redirect_url=redirect_url)
        self.redirect_url = redirect_url


class SequenceInactiveError(NoActiveSequenceError):
    """Existen secuencias para el tipo de documento pero todas están desactivadas."""
    kind = "sequence_inactive"


class SequenceExhaustedError(FiscalError):
    """La secuencia activa alcanzó su número máximo."""
    status_code = 409
    kind = "sequence_exhausted"

    def __init__(self, message: str, redirect_url: Optional[str] = None):
        super().__init__(message, redirect_url=redirect_url)
        self.redirect_url = redirect_url


class TransientStoreError(FiscalError):
    """El incremento atómico falló o fue abortado; no se consumió ningún número."""
    status_code = 503
    kind = "transient_store_error"


# Nombres cortos usados por las capas que consumen el módulo
ValidationError = SequenceValidationError
ConflictError = SequenceConflictError
