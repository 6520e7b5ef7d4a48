"""
Operaciones atómicas sobre el contador de las secuencias fiscales.

current_number solo se modifica aquí, siempre con una única sentencia UPDATE
evaluada por la base de datos. Nunca se lee el valor en Python para escribir
el siguiente.
"""
from typing import NamedTuple, Optional, Tuple
from uuid import UUID

from sqlalchemy import update, select, or_, func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.fiscal.exceptions import TransientStoreError
from app.modules.fiscal.models import FiscalSequence


class IncrementedCounter(NamedTuple):
    sequence_id: UUID
    issued_number: int
    prefix: str
    suffix: str
    padding_length: int


def increment_counter(db: Session, organization_id: UUID, document_type_id: UUID) -> Optional[IncrementedCounter]:
    """
    Incrementa la secuencia activa y no agotada del tipo de documento.

    Devuelve el número emitido (valor previo al incremento) junto con el
    formato vigente en ese momento, o None si ninguna fila calificó.
    La transacción queda abierta; el llamador hace commit.
    """
    stmt = (
        update(FiscalSequence)
        .where(
            FiscalSequence.organization_id == organization_id,
            FiscalSequence.document_type_id == document_type_id,
            FiscalSequence.is_active == True,
            or_(
                FiscalSequence.max_number.is_(None),
                FiscalSequence.current_number <= FiscalSequence.max_number,
            ),
        )
        .values(
            current_number=FiscalSequence.current_number + 1,
            updated_at=func.now(),
        )
        .returning(
            FiscalSequence.id,
            FiscalSequence.current_number,
            FiscalSequence.prefix,
            FiscalSequence.suffix,
            FiscalSequence.padding_length,
        )
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    if row is None:
        return None
    return IncrementedCounter(
        sequence_id=row.id,
        issued_number=row.current_number - 1,
        prefix=row.prefix or "",
        suffix=row.suffix or "",
        padding_length=row.padding_length,
    )


def _read_current_number(db: Session, scope) -> Optional[int]:
    return db.execute(
        select(FiscalSequence.current_number).where(*scope).with_for_update()
    ).scalar_one_or_none()


def reset_counter(db: Session, organization_id: UUID, sequence_id: UUID) -> Optional[Tuple[int, int]]:
    """
    Devuelve current_number a initial_number. Retorna (anterior, nuevo) o
    None si la secuencia no existe en la organización.

    El UPDATE solo aplica si current_number sigue siendo el valor leído, así
    el número anterior auditado es exacto aunque la base no bloquee la fila
    (SQLite ignora FOR UPDATE). Si una asignación se cuela entre la lectura y
    el UPDATE se vuelve a leer.
    """
    scope = (
        FiscalSequence.id == sequence_id,
        FiscalSequence.organization_id == organization_id,
    )
    for _ in range(settings.FISCAL_ALLOCATION_MAX_RETRIES + 1):
        previous = _read_current_number(db, scope)
        if previous is None:
            return None

        new_number = db.execute(
            update(FiscalSequence)
            .where(*scope, FiscalSequence.current_number == previous)
            .values(current_number=FiscalSequence.initial_number, updated_at=func.now())
            .returning(FiscalSequence.current_number)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if new_number is not None:
            return previous, new_number

    raise TransientStoreError("El contador cambió durante el reinicio. Intente de nuevo.")
