"""
Servicio de secuencias fiscales

Implementa:
- CRUD de secuencias con validación de configuración
- Formato de números fiscales (prefijo + número con ceros + sufijo)
- Asignación atómica del siguiente número con reintentos acotados
- Reinicio auditado y estadísticas de uso
"""
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.fiscal import registry, store
from app.modules.fiscal.exceptions import (
    NoActiveSequenceError, SequenceConflictError, SequenceExhaustedError,
    SequenceInactiveError, SequenceNotFoundError, SequenceValidationError,
    TransientStoreError
)
from app.modules.fiscal.models import FiscalSequence, FiscalSequenceReset
from app.modules.fiscal.schemas import (
    AllocationResult, SequenceConfig, SequenceCreate, SequenceStats, SequenceUpdate
)

logger = logging.getLogger(__name__)

MAX_PADDING_LENGTH = 20
MAX_AFFIX_LENGTH = 10
NEAR_LIMIT_PERCENTAGE = 80


def preview_fiscal_number(prefix: Optional[str], suffix: Optional[str], number: int, padding_length: int) -> str:
    """prefix + número rellenado con ceros a padding_length + suffix. No trunca."""
    return f"{prefix or ''}{str(number).zfill(padding_length)}{suffix or ''}"


def validate_sequence_config(config: Union[SequenceConfig, Mapping[str, Any]]) -> List[str]:
    """Devuelve la lista de errores de la configuración; vacía si es válida."""
    if isinstance(config, SequenceConfig):
        config = config.model_dump()
    if not isinstance(config, Mapping):
        return ["La configuración debe ser un objeto con los campos de la secuencia"]

    errors = []

    padding = config.get("padding_length")
    if padding is None:
        errors.append(f"La longitud de relleno debe estar entre 1 y {MAX_PADDING_LENGTH}")
    elif _as_int(padding) is None:
        errors.append("padding_length debe ser un entero")
    elif not 1 <= _as_int(padding) <= MAX_PADDING_LENGTH:
        errors.append(f"La longitud de relleno debe estar entre 1 y {MAX_PADDING_LENGTH}")

    initial = config.get("initial_number")
    if initial is None:
        errors.append("El número inicial es obligatorio")
    elif _as_int(initial) is None:
        errors.append("initial_number debe ser un entero")
    elif _as_int(initial) < 0:
        errors.append("El número inicial no puede ser negativo")

    max_number = config.get("max_number")
    if max_number is not None:
        if _as_int(max_number) is None:
            errors.append("max_number debe ser un entero")
        elif _as_int(initial) is not None and _as_int(max_number) < _as_int(initial):
            errors.append("El número máximo debe ser mayor o igual al número inicial")

    for field, label in (("prefix", "El prefijo"), ("suffix", "El sufijo")):
        value = config.get(field)
        if value is None:
            continue
        if not isinstance(value, str):
            errors.append(f"{label} debe ser texto")
        elif len(value) > MAX_AFFIX_LENGTH:
            errors.append(f"{label} no puede tener más de {MAX_AFFIX_LENGTH} caracteres")

    is_active = config.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        errors.append("is_active debe ser verdadero o falso")
    return errors


def _as_int(value: Any) -> Optional[int]:
    """Entero equivalente al valor (acepta '4' y 4.0), o None si no lo es."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _config_with_defaults(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Completa una configuración parcial con los valores por defecto de SequenceConfig."""
    defaults = {name: field.get_default() for name, field in SequenceConfig.model_fields.items()}
    return {**defaults, **config}


class SequenceManager:
    """Gestión de secuencias fiscales de una organización"""

    def __init__(self, db: Session):
        self.db = db

    preview_fiscal_number = staticmethod(preview_fiscal_number)
    validate_sequence_config = staticmethod(validate_sequence_config)

    # ===== LECTURA =====

    def list_sequences(
        self,
        organization_id: UUID,
        include_inactive: bool = True,
        document_type_id: Optional[UUID] = None
    ) -> List[FiscalSequence]:
        query = self.db.query(FiscalSequence).filter(FiscalSequence.organization_id == organization_id)
        if not include_inactive:
            query = query.filter(FiscalSequence.is_active == True)
        if document_type_id:
            query = query.filter(FiscalSequence.document_type_id == document_type_id)
        return query.order_by(FiscalSequence.created_at.desc()).all()

    def get_sequence(self, organization_id: UUID, sequence_id: UUID) -> FiscalSequence:
        sequence = self.db.query(FiscalSequence).filter(
            FiscalSequence.id == sequence_id,
            FiscalSequence.organization_id == organization_id
        ).first()
        if not sequence:
            raise SequenceNotFoundError("Secuencia fiscal no encontrada")
        return sequence

    def get_active_sequence(self, organization_id: UUID, document_type_id: UUID) -> Optional[FiscalSequence]:
        return self.db.query(FiscalSequence).filter(
            FiscalSequence.organization_id == organization_id,
            FiscalSequence.document_type_id == document_type_id,
            FiscalSequence.is_active == True
        ).first()

    # ===== CONFIGURACIÓN =====

    def create_sequence(
        self,
        organization_id: UUID,
        document_type_id: UUID,
        config: Union[SequenceConfig, Mapping[str, Any]]
    ) -> FiscalSequence:
        """
        Crear una secuencia. current_number arranca en initial_number.
        """
        if not isinstance(config, SequenceConfig):
            raw = _config_with_defaults(config) if isinstance(config, Mapping) else config
            errors = validate_sequence_config(raw)
            if errors:
                raise SequenceValidationError(errors)
            try:
                config = SequenceConfig(**raw)
            except PydanticValidationError as e:
                raise SequenceValidationError([err["msg"] for err in e.errors()])

        errors = validate_sequence_config(config)
        if errors:
            raise SequenceValidationError(errors)

        document_type = registry.get_document_type(self.db, organization_id, document_type_id)

        if config.is_active and self.get_active_sequence(organization_id, document_type.id):
            raise SequenceConflictError(
                f"Ya existe una secuencia activa para {document_type.code}. Desactívela primero."
            )

        sequence = FiscalSequence(
            organization_id=organization_id,
            document_type_id=document_type.id,
            prefix=config.prefix or "",
            suffix=config.suffix or "",
            initial_number=config.initial_number,
            current_number=config.initial_number,
            max_number=config.max_number,
            padding_length=config.padding_length,
            is_active=config.is_active,
        )
        self.db.add(sequence)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SequenceConflictError(
                f"Ya existe una secuencia activa para {document_type.code}. Desactívela primero."
            )
        self.db.refresh(sequence)
        logger.info(
            f"Created fiscal sequence {sequence.id} for document type {document_type.code} "
            f"(organization {organization_id})"
        )
        return sequence

    def create_from_schema(self, organization_id: UUID, data: SequenceCreate) -> FiscalSequence:
        return self.create_sequence(
            organization_id,
            data.document_type_id,
            SequenceConfig(**data.model_dump(exclude={"document_type_id"}))
        )

    def update_sequence(
        self,
        organization_id: UUID,
        sequence_id: UUID,
        patch: Union[SequenceUpdate, Mapping[str, Any]]
    ) -> FiscalSequence:
        """
        Editar prefijo, sufijo, relleno, máximo o estado. El contador no se toca.
        """
        if isinstance(patch, SequenceUpdate):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = dict(patch)
        changes = {k: v for k, v in changes.items() if k in SequenceUpdate.model_fields}

        # null en padding/is_active deja el valor actual; en prefijo/sufijo lo vacía
        for field in ("padding_length", "is_active"):
            if field in changes and changes[field] is None:
                del changes[field]
        for field in ("prefix", "suffix"):
            if field in changes and changes[field] is None:
                changes[field] = ""

        sequence = self.get_sequence(organization_id, sequence_id)

        merged = {
            "prefix": changes.get("prefix", sequence.prefix),
            "suffix": changes.get("suffix", sequence.suffix),
            "padding_length": changes.get("padding_length", sequence.padding_length),
            "initial_number": sequence.initial_number,
            "max_number": changes.get("max_number", sequence.max_number),
            "is_active": changes.get("is_active", sequence.is_active),
        }
        errors = validate_sequence_config(merged)
        if errors:
            raise SequenceValidationError(errors)

        for field in ("padding_length", "max_number"):
            if changes.get(field) is not None:
                changes[field] = _as_int(changes[field])

        if changes.get("is_active") and not sequence.is_active:
            other = self.get_active_sequence(organization_id, sequence.document_type_id)
            if other is not None and other.id != sequence.id:
                raise SequenceConflictError(
                    "Ya existe una secuencia activa para este tipo de documento. Desactívela primero."
                )

        for field, value in changes.items():
            setattr(sequence, field, value)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SequenceConflictError(
                "Ya existe una secuencia activa para este tipo de documento. Desactívela primero."
            )
        self.db.refresh(sequence)
        return sequence

    def reset_sequence(
        self,
        organization_id: UUID,
        sequence_id: UUID,
        reset_by: Optional[UUID] = None
    ) -> FiscalSequenceReset:
        """
        Reinicia current_number al número inicial y deja registro de auditoría.

        No verifica documentos ya emitidos: tras un reinicio pueden repetirse
        números fiscales.
        """
        try:
            result = store.reset_counter(self.db, organization_id, sequence_id)
        except (TransientStoreError, DBAPIError):
            self.db.rollback()
            raise
        if result is None:
            self.db.rollback()
            raise SequenceNotFoundError("Secuencia fiscal no encontrada")

        previous_number, new_number = result
        audit = FiscalSequenceReset(
            organization_id=organization_id,
            sequence_id=sequence_id,
            reset_by=reset_by,
            previous_number=previous_number,
            new_number=new_number,
        )
        self.db.add(audit)
        self.db.commit()
        self.db.refresh(audit)
        logger.warning(
            f"Fiscal sequence {sequence_id} reset from {previous_number} to {new_number} "
            f"by user {reset_by} (organization {organization_id})"
        )
        return audit

    def delete_sequence(self, organization_id: UUID, sequence_id: UUID) -> None:
        sequence = self.get_sequence(organization_id, sequence_id)
        if sequence.current_number > sequence.initial_number:
            raise SequenceConflictError(
                "No se puede eliminar una secuencia que ya emitió números. Desactívela en su lugar."
            )

        self.db.delete(sequence)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SequenceConflictError(
                "No se puede eliminar una secuencia referenciada por documentos existentes."
            )
        logger.info(f"Deleted fiscal sequence {sequence_id} (organization {organization_id})")

    # ===== ESTADÍSTICAS =====

    def get_sequence_stats(self, organization_id: UUID, sequence_id: UUID) -> SequenceStats:
        from app.modules.invoices.models import Invoice
        from app.modules.quotes.models import Quote

        sequence = self.get_sequence(organization_id, sequence_id)
        total_issued = sequence.numbers_issued

        remaining = None
        percentage_used = None
        if sequence.max_number is not None:
            capacity = sequence.max_number - sequence.initial_number + 1
            remaining = max(sequence.max_number - sequence.current_number + 1, 0)
            percentage_used = round(total_issued / capacity * 100, 2) if capacity > 0 else 100.0

        last_dates = [
            self.db.query(func.max(model.created_at)).filter(
                model.organization_id == organization_id,
                model.fiscal_sequence_id == sequence.id
            ).scalar()
            for model in (Invoice, Quote)
        ]
        last_dates = [d for d in last_dates if d is not None]
        if last_dates:
            last_issued_at = max(last_dates)
        elif total_issued > 0:
            last_issued_at = sequence.updated_at
        else:
            last_issued_at = None

        return SequenceStats(
            sequence_id=sequence.id,
            total_issued=total_issued,
            remaining=remaining,
            percentage_used=percentage_used,
            next_number=preview_fiscal_number(
                sequence.prefix, sequence.suffix, sequence.current_number, sequence.padding_length
            ),
            is_near_limit=percentage_used is not None and percentage_used > NEAR_LIMIT_PERCENTAGE,
            is_exhausted=sequence.is_exhausted,
            last_issued_at=last_issued_at,
        )

    # ===== ASIGNACIÓN =====

    def allocate(self, organization_id: UUID, document_type_id: UUID) -> AllocationResult:
        """
        Asigna el siguiente número fiscal del tipo de documento.

        El incremento es una única sentencia atómica confirmada antes de
        devolver el resultado; si el documento que lo usa falla después, el
        número queda consumido.
        """
        attempt = 0
        while True:
            try:
                counter = store.increment_counter(self.db, organization_id, document_type_id)
                if counter is None:
                    self.db.rollback()
                    self._raise_not_allocatable(organization_id, document_type_id)
                self.db.commit()
                break
            except DBAPIError as e:
                self.db.rollback()
                attempt += 1
                logger.error(
                    f"Fiscal allocation failed for document type {document_type_id} "
                    f"(attempt {attempt}/{settings.FISCAL_ALLOCATION_MAX_RETRIES + 1}): {e}"
                )
                if attempt > settings.FISCAL_ALLOCATION_MAX_RETRIES:
                    raise TransientStoreError(
                        "No se pudo asignar el número fiscal. Intente de nuevo."
                    ) from e
                time.sleep(settings.FISCAL_ALLOCATION_RETRY_BACKOFF * (2 ** (attempt - 1)))

        formatted = preview_fiscal_number(
            counter.prefix, counter.suffix, counter.issued_number, counter.padding_length
        )
        logger.info(
            f"Allocated fiscal number {formatted} (sequence {counter.sequence_id}, number {counter.issued_number})"
        )
        return AllocationResult(
            success=True,
            formatted_number=formatted,
            sequence_id=counter.sequence_id,
            number=counter.issued_number,
        )

    generate_next_fiscal_number = allocate

    def _raise_not_allocatable(self, organization_id: UUID, document_type_id: UUID) -> None:
        redirect_url = settings.FISCAL_SEQUENCES_CONFIG_URL
        sequences = self.db.query(FiscalSequence).filter(
            FiscalSequence.organization_id == organization_id,
            FiscalSequence.document_type_id == document_type_id
        ).all()

        if not sequences:
            raise NoActiveSequenceError(
                "No hay una secuencia fiscal configurada para este tipo de documento",
                redirect_url=redirect_url
            )
        active = [s for s in sequences if s.is_active]
        if not active:
            raise SequenceInactiveError(
                "La secuencia fiscal de este tipo de documento está inactiva",
                redirect_url=redirect_url
            )
        raise SequenceExhaustedError(
            "La secuencia fiscal activa alcanzó su número máximo",
            redirect_url=redirect_url
        )
