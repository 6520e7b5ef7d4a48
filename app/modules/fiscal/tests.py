"""
Tests del módulo fiscal

- Formato de números (vista previa) y validación de configuración
- Una sola secuencia activa por tipo de documento
- Asignación atómica, concurrente, con reintentos y agotamiento
- Reinicio auditado, borrado con y sin documentos emitidos
- Validador previo y endpoints HTTP
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.database.database import SessionLocal
from app.modules.fiscal import store
from app.modules.fiscal.exceptions import (
    ConflictError, DocumentTypeNotFoundError, NoActiveSequenceError, SequenceExhaustedError,
    SequenceInactiveError, SequenceNotFoundError, TransientStoreError, ValidationError
)
from app.modules.fiscal.models import FiscalSequence, FiscalSequenceReset
from app.modules.fiscal.registry import ensure_default_document_types, DEFAULT_DOCUMENT_TYPES
from app.modules.fiscal.schemas import SequenceConfig
from app.modules.fiscal.service import SequenceManager, preview_fiscal_number, validate_sequence_config
from app.modules.fiscal.validator import SequenceValidator, DocumentTypeState
from app.modules.invoices.schemas import InvoiceCreate, DocumentLineCreate
from app.modules.invoices.service import InvoiceService


def _config(**overrides):
    data = {"prefix": "FACT-", "suffix": "", "initial_number": 1, "padding_length": 4, "is_active": True}
    data.update(overrides)
    return data


def _active_count(db, organization_id, document_type_id):
    db.expire_all()
    return db.query(FiscalSequence).filter(
        FiscalSequence.organization_id == organization_id,
        FiscalSequence.document_type_id == document_type_id,
        FiscalSequence.is_active == True
    ).count()


# ===== FORMATO =====

def test_preview_pads_to_minimum_width():
    assert preview_fiscal_number("B01-", "", 5, 4) == "B01-0005"


def test_preview_never_truncates_long_numbers():
    assert preview_fiscal_number("B01-", "", 123, 2) == "B01-123"


def test_preview_with_suffix_and_missing_affixes():
    assert preview_fiscal_number("COT-", "-2026", 7, 3) == "COT-007-2026"
    assert preview_fiscal_number(None, None, 42, 8) == "00000042"


def test_preview_is_available_on_manager():
    assert SequenceManager.preview_fiscal_number("F", "X", 1, 2) == "F01X"


# ===== VALIDACIÓN DE CONFIGURACIÓN =====

def test_validate_config_accepts_valid_config():
    assert validate_sequence_config(_config()) == []
    assert validate_sequence_config(SequenceConfig(**_config())) == []


def test_validate_config_collects_every_error():
    errors = validate_sequence_config({
        "prefix": "P" * 11,
        "suffix": "S" * 11,
        "initial_number": -1,
        "padding_length": 0,
    })
    assert len(errors) == 4


def test_validate_config_rejects_padding_over_limit_and_low_max():
    errors = validate_sequence_config(_config(padding_length=21, initial_number=10, max_number=5))
    assert len(errors) == 2


def test_validate_config_never_raises_on_empty_input():
    errors = validate_sequence_config({})
    assert errors


def test_validate_config_reports_wrong_types_instead_of_raising():
    errors = validate_sequence_config({"padding_length": "abc", "initial_number": [1], "prefix": 5})
    assert "padding_length debe ser un entero" in errors
    assert "initial_number debe ser un entero" in errors
    assert "El prefijo debe ser texto" in errors

    assert validate_sequence_config(None)
    assert validate_sequence_config({"padding_length": 4, "initial_number": 1, "is_active": "si"})


def test_validate_config_accepts_numeric_strings():
    assert validate_sequence_config({"padding_length": "4", "initial_number": "1", "max_number": 9.0}) == []


# ===== REGISTRO DE TIPOS =====

def test_default_document_types_are_seeded_once(db, organization, document_types):
    assert set(document_types) == {item["code"] for item in DEFAULT_DOCUMENT_TYPES}
    assert ensure_default_document_types(db, organization.id) == []
    assert document_types["B01"].requires_tax_id is True
    assert document_types["COT"].category == "quote"


# ===== CRUD =====

def test_create_sequence_starts_at_initial_number(db, organization, document_types):
    sequence = SequenceManager(db).create_sequence(
        organization.id, document_types["B01"].id, _config(initial_number=50)
    )
    assert sequence.current_number == 50
    assert sequence.initial_number == 50
    assert sequence.is_active is True


def test_create_sequence_rejects_invalid_config(db, organization, document_types):
    with pytest.raises(ValidationError) as exc_info:
        SequenceManager(db).create_sequence(
            organization.id, document_types["B01"].id, _config(padding_length=0, initial_number=-3)
        )
    assert len(exc_info.value.errors) == 2


@pytest.mark.parametrize("bad_config", [
    {"padding_length": None},
    {"padding_length": "abc"},
    {"initial_number": "uno"},
    {"is_active": "tal vez"},
])
def test_create_sequence_with_bad_mapping_raises_validation_error(db, organization, document_types, bad_config):
    with pytest.raises(ValidationError) as exc_info:
        SequenceManager(db).create_sequence(organization.id, document_types["B01"].id, bad_config)
    assert exc_info.value.errors
    assert _active_count(db, organization.id, document_types["B01"].id) == 0


def test_create_sequence_fills_defaults_and_coerces_numbers(db, organization, document_types):
    sequence = SequenceManager(db).create_sequence(
        organization.id, document_types["B01"].id, {"prefix": "B01", "initial_number": "7"}
    )
    assert sequence.initial_number == 7
    assert sequence.padding_length == settings.FISCAL_DEFAULT_PADDING_LENGTH


def test_create_sequence_for_unknown_document_type(db, organization):
    from uuid import uuid4
    with pytest.raises(DocumentTypeNotFoundError):
        SequenceManager(db).create_sequence(organization.id, uuid4(), _config())


def test_second_active_sequence_conflicts(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    manager.create_sequence(organization.id, type_id, _config())

    with pytest.raises(ConflictError):
        manager.create_sequence(organization.id, type_id, _config(prefix="OTRA-"))

    assert _active_count(db, organization.id, type_id) == 1


def test_inactive_sequence_can_coexist_but_not_be_activated(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    manager.create_sequence(organization.id, type_id, _config())
    spare = manager.create_sequence(organization.id, type_id, _config(prefix="B-", is_active=False))

    with pytest.raises(ConflictError):
        manager.update_sequence(organization.id, spare.id, {"is_active": True})

    assert _active_count(db, organization.id, type_id) == 1


def test_at_most_one_active_after_switching_sequences(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    first = manager.create_sequence(organization.id, type_id, _config())
    second = manager.create_sequence(organization.id, type_id, _config(prefix="N-", is_active=False))

    manager.update_sequence(organization.id, first.id, {"is_active": False})
    assert _active_count(db, organization.id, type_id) == 0
    manager.update_sequence(organization.id, second.id, {"is_active": True})
    assert _active_count(db, organization.id, type_id) == 1
    manager.delete_sequence(organization.id, first.id)
    assert _active_count(db, organization.id, type_id) == 1


def test_store_rejects_duplicate_active_sequence(db, organization, document_types):
    type_id = document_types["B15"].id
    SequenceManager(db).create_sequence(organization.id, type_id, _config())

    db.add(FiscalSequence(
        organization_id=organization.id, document_type_id=type_id,
        prefix="X", suffix="", initial_number=1, current_number=1, padding_length=4, is_active=True
    ))
    from sqlalchemy.exc import IntegrityError
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_update_ignores_counter_fields(db, organization, document_types):
    manager = SequenceManager(db)
    sequence = manager.create_sequence(organization.id, document_types["B01"].id, _config())

    updated = manager.update_sequence(
        organization.id, sequence.id, {"prefix": "B01-", "current_number": 999, "initial_number": 500}
    )
    assert updated.prefix == "B01-"
    assert updated.current_number == 1
    assert updated.initial_number == 1


def test_update_with_null_padding_keeps_current_value(db, organization, document_types):
    manager = SequenceManager(db)
    sequence = manager.create_sequence(organization.id, document_types["B01"].id, _config(padding_length=6))

    updated = manager.update_sequence(
        organization.id, sequence.id, {"prefix": "X-", "padding_length": None, "is_active": None, "suffix": None}
    )
    assert updated.prefix == "X-"
    assert updated.suffix == ""
    assert updated.padding_length == 6
    assert updated.is_active is True


def test_update_validates_merged_config(db, organization, document_types):
    manager = SequenceManager(db)
    sequence = manager.create_sequence(organization.id, document_types["B01"].id, _config(initial_number=10))
    with pytest.raises(ValidationError):
        manager.update_sequence(organization.id, sequence.id, {"max_number": 5})


def test_get_sequence_is_scoped_to_organization(db, organization, document_types):
    from uuid import uuid4
    sequence = SequenceManager(db).create_sequence(organization.id, document_types["B01"].id, _config())
    with pytest.raises(SequenceNotFoundError):
        SequenceManager(db).get_sequence(uuid4(), sequence.id)


# ===== ASIGNACIÓN =====

def test_end_to_end_allocation_then_deactivation(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    sequence = manager.create_sequence(
        organization.id, type_id, {"prefix": "FACT-", "padding_length": 4, "initial_number": 1}
    )

    first = manager.allocate(organization.id, type_id)
    second = manager.generate_next_fiscal_number(organization.id, type_id)
    assert first.success is True
    assert first.formatted_number == "FACT-0001"
    assert second.formatted_number == "FACT-0002"
    assert first.sequence_id == sequence.id

    manager.update_sequence(organization.id, sequence.id, {"is_active": False})
    with pytest.raises(NoActiveSequenceError):
        manager.allocate(organization.id, type_id)


def test_allocate_without_any_sequence(db, organization, document_types):
    with pytest.raises(NoActiveSequenceError) as exc_info:
        SequenceManager(db).allocate(organization.id, document_types["B02"].id)
    assert not isinstance(exc_info.value, SequenceInactiveError)
    assert exc_info.value.redirect_url == settings.FISCAL_SEQUENCES_CONFIG_URL


def test_allocate_with_only_inactive_sequences(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    manager.create_sequence(organization.id, type_id, _config(is_active=False))
    with pytest.raises(SequenceInactiveError):
        manager.allocate(organization.id, type_id)


def test_allocate_stops_at_max_number(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    manager.create_sequence(organization.id, type_id, _config(initial_number=1, max_number=2))

    assert manager.allocate(organization.id, type_id).number == 1
    assert manager.allocate(organization.id, type_id).number == 2
    with pytest.raises(SequenceExhaustedError):
        manager.allocate(organization.id, type_id)


def test_allocate_uses_current_formatting(db, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    sequence = manager.create_sequence(organization.id, type_id, _config(prefix="A-", padding_length=2))
    manager.allocate(organization.id, type_id)
    manager.update_sequence(organization.id, sequence.id, {"prefix": "B-", "suffix": "-Z", "padding_length": 5})
    assert manager.allocate(organization.id, type_id).formatted_number == "B-00002-Z"


def test_concurrent_allocations_are_unique_and_contiguous(db, organization, document_types):
    type_id = document_types["B02"].id
    organization_id = organization.id
    SequenceManager(db).create_sequence(organization_id, type_id, _config(initial_number=100))
    requests = 20

    def allocate_once(_):
        session = SessionLocal()
        try:
            return SequenceManager(session).allocate(organization_id, type_id).number
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as executor:
        numbers = list(executor.map(allocate_once, range(requests)))

    assert len(set(numbers)) == requests
    assert sorted(numbers) == list(range(100, 100 + requests))

    db.expire_all()
    sequence = SequenceManager(db).get_active_sequence(organization_id, type_id)
    assert sequence.current_number == 100 + requests


def test_allocate_retries_transient_store_failures(db, organization, document_types, monkeypatch):
    type_id = document_types["B01"].id
    SequenceManager(db).create_sequence(organization.id, type_id, _config())
    monkeypatch.setattr(settings, "FISCAL_ALLOCATION_RETRY_BACKOFF", 0)

    real_increment = store.increment_counter
    calls = {"count": 0}

    def flaky_increment(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("UPDATE fiscal_sequences", {}, Exception("database is locked"))
        return real_increment(*args, **kwargs)

    monkeypatch.setattr(store, "increment_counter", flaky_increment)
    result = SequenceManager(db).allocate(organization.id, type_id)

    assert calls["count"] == 2
    assert result.formatted_number == "FACT-0001"


def test_allocate_gives_up_without_consuming_numbers(db, organization, document_types, monkeypatch):
    type_id = document_types["B01"].id
    SequenceManager(db).create_sequence(organization.id, type_id, _config())
    monkeypatch.setattr(settings, "FISCAL_ALLOCATION_RETRY_BACKOFF", 0)

    def broken_increment(*args, **kwargs):
        raise OperationalError("UPDATE fiscal_sequences", {}, Exception("server closed the connection"))

    monkeypatch.setattr(store, "increment_counter", broken_increment)
    with pytest.raises(TransientStoreError):
        SequenceManager(db).allocate(organization.id, type_id)

    monkeypatch.undo()
    assert SequenceManager(db).allocate(organization.id, type_id).formatted_number == "FACT-0001"


# ===== REINICIO =====

def test_reset_returns_counter_to_initial_number(db, owner, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    sequence = manager.create_sequence(organization.id, type_id, _config(initial_number=1))
    for _ in range(3):
        manager.allocate(organization.id, type_id)

    audit = manager.reset_sequence(organization.id, sequence.id, reset_by=owner.id)
    assert audit.previous_number == 4
    assert audit.new_number == 1

    assert manager.allocate(organization.id, type_id).number == 1
    assert db.query(FiscalSequenceReset).filter(FiscalSequenceReset.sequence_id == sequence.id).count() == 1


def test_reset_audits_the_counter_it_actually_replaced(db, organization, document_types, monkeypatch):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    sequence = manager.create_sequence(organization.id, type_id, _config(initial_number=1))
    for _ in range(3):
        manager.allocate(organization.id, type_id)

    real_read = store._read_current_number
    reads = []

    def stale_then_real(session, scope):
        reads.append(1)
        # La primera lectura ve un valor viejo, como si una asignación
        # hubiera confirmado entre la lectura y el UPDATE
        if len(reads) == 1:
            return 2
        return real_read(session, scope)

    monkeypatch.setattr(store, "_read_current_number", stale_then_real)
    audit = manager.reset_sequence(organization.id, sequence.id)

    assert len(reads) == 2
    assert audit.previous_number == 4
    assert audit.new_number == 1


def test_reset_gives_up_when_counter_keeps_moving(db, organization, document_types, monkeypatch):
    manager = SequenceManager(db)
    type_id = document_types["B01"].id
    sequence = manager.create_sequence(organization.id, type_id, _config(initial_number=1))
    manager.allocate(organization.id, type_id)

    monkeypatch.setattr(store, "_read_current_number", lambda session, scope: 999)
    with pytest.raises(TransientStoreError):
        manager.reset_sequence(organization.id, sequence.id)

    db.expire_all()
    assert manager.get_sequence(organization.id, sequence.id).current_number == 2
    assert db.query(FiscalSequenceReset).count() == 0


def test_reset_unknown_sequence(db, organization):
    from uuid import uuid4
    with pytest.raises(SequenceNotFoundError):
        SequenceManager(db).reset_sequence(organization.id, uuid4())


# ===== BORRADO =====

def test_delete_fresh_sequence_succeeds(db, organization, document_types):
    manager = SequenceManager(db)
    sequence = manager.create_sequence(organization.id, document_types["B01"].id, _config())
    manager.delete_sequence(organization.id, sequence.id)
    with pytest.raises(SequenceNotFoundError):
        manager.get_sequence(organization.id, sequence.id)


def _invoice_data(document_type_id):
    return InvoiceCreate(
        document_type_id=document_type_id,
        customer_name="Cliente Final",
        items=[DocumentLineCreate(description="Servicio", quantity=Decimal("1"), unit_price=Decimal("100"))]
    )


def test_delete_sequence_with_issued_document_conflicts(db, owner, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    sequence = manager.create_sequence(organization.id, type_id, _config())
    InvoiceService(db).create_invoice(_invoice_data(type_id), organization.id, owner.id)

    with pytest.raises(ConflictError):
        manager.delete_sequence(organization.id, sequence.id)


def test_delete_referenced_sequence_conflicts_even_after_reset(db, owner, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    sequence = manager.create_sequence(organization.id, type_id, _config())
    InvoiceService(db).create_invoice(_invoice_data(type_id), organization.id, owner.id)
    manager.reset_sequence(organization.id, sequence.id, reset_by=owner.id)
    db.expire_all()

    with pytest.raises(ConflictError):
        manager.delete_sequence(organization.id, sequence.id)
    db.expire_all()
    assert manager.get_sequence(organization.id, sequence.id) is not None


# ===== ESTADÍSTICAS =====

def test_sequence_stats(db, owner, organization, document_types):
    manager = SequenceManager(db)
    type_id = document_types["B02"].id
    sequence = manager.create_sequence(organization.id, type_id, _config(initial_number=1, max_number=10))
    stats = manager.get_sequence_stats(organization.id, sequence.id)
    assert stats.total_issued == 0
    assert stats.last_issued_at is None

    for _ in range(9):
        InvoiceService(db).create_invoice(_invoice_data(type_id), organization.id, owner.id)
    db.expire_all()

    stats = manager.get_sequence_stats(organization.id, sequence.id)
    assert stats.total_issued == 9
    assert stats.remaining == 1
    assert stats.percentage_used == 90.0
    assert stats.is_near_limit is True
    assert stats.is_exhausted is False
    assert stats.next_number == "FACT-0010"
    assert stats.last_issued_at is not None


def test_stats_for_unbounded_sequence(db, organization, document_types):
    manager = SequenceManager(db)
    sequence = manager.create_sequence(organization.id, document_types["B01"].id, _config())
    stats = manager.get_sequence_stats(organization.id, sequence.id)
    assert stats.remaining is None
    assert stats.percentage_used is None
    assert stats.is_near_limit is False


# ===== VALIDADOR =====

def test_validator_without_active_sequence(db, organization, document_types):
    type_id = document_types["B01"].id
    result = SequenceValidator(db, organization.id).validate_specific_document_type(type_id)
    assert result.is_valid is False
    assert result.missing_sequences == [str(type_id)]
    assert result.redirect_url == settings.FISCAL_SEQUENCES_CONFIG_URL


def test_validator_with_one_active_sequence(db, organization, document_types):
    type_id = document_types["B01"].id
    SequenceManager(db).create_sequence(organization.id, type_id, _config())
    result = SequenceValidator(db, organization.id).validate_specific_document_type(type_id)
    assert result.is_valid is True
    assert result.missing_sequences == []
    assert result.redirect_url is None


def test_validator_rejects_missing_or_malformed_id(db, organization):
    validator = SequenceValidator(db, organization.id)
    assert validator.validate_specific_document_type(None).is_valid is False
    assert validator.validate_specific_document_type("").missing_sequences
    assert validator.validate_specific_document_type("no-es-uuid").is_valid is False


def test_validator_categories(db, organization, document_types):
    validator = SequenceValidator(db, organization.id)

    result = validator.validate_all_sequences()
    assert result.is_valid is False
    assert result.missing_sequences == ["invoice", "quote"]

    SequenceManager(db).create_sequence(organization.id, document_types["B02"].id, _config())
    assert validator.validate_invoice_sequences().is_valid is True
    assert validator.validate_quote_sequences().missing_sequences == ["quote"]

    SequenceManager(db).create_sequence(organization.id, document_types["COT"].id, _config(prefix="COT-"))
    assert validator.validate_all_sequences().is_valid is True


def test_document_type_state_transitions(db, organization, document_types):
    manager = SequenceManager(db)
    validator = SequenceValidator(db, organization.id)
    type_id = document_types["B01"].id

    assert validator.document_type_state(type_id) == DocumentTypeState.UNCONFIGURED
    sequence = manager.create_sequence(organization.id, type_id, _config(is_active=False, max_number=1))
    assert validator.document_type_state(type_id) == DocumentTypeState.CONFIGURED
    manager.update_sequence(organization.id, sequence.id, {"is_active": True})
    assert validator.document_type_state(type_id) == DocumentTypeState.ACTIVE
    manager.allocate(organization.id, type_id)
    db.expire_all()
    assert validator.document_type_state(type_id) == DocumentTypeState.EXHAUSTED
    assert validator.validate_specific_document_type(type_id).is_valid is False


def test_require_valid_raises_typed_errors(db, organization, document_types):
    validator = SequenceValidator(db, organization.id)
    type_id = document_types["B01"].id
    with pytest.raises(NoActiveSequenceError):
        validator.require_valid(type_id)

    SequenceManager(db).create_sequence(organization.id, type_id, _config(is_active=False))
    with pytest.raises(SequenceInactiveError):
        validator.require_valid(type_id)


# ===== HTTP =====

def test_api_sequence_lifecycle(client, owner_headers, document_types):
    type_id = str(document_types["B01"].id)

    response = client.post("/fiscal/sequences", headers=owner_headers, json={
        "document_type_id": type_id, "prefix": "B01", "padding_length": 8, "initial_number": 1
    })
    assert response.status_code == 201, response.text
    sequence_id = response.json()["id"]
    assert response.json()["current_number"] == 1

    response = client.post("/fiscal/allocate", headers=owner_headers, json={"document_type_id": type_id})
    assert response.status_code == 200
    assert response.json()["formatted_number"] == "B0100000001"

    response = client.get(f"/fiscal/sequences/{sequence_id}/stats", headers=owner_headers)
    assert response.json()["total_issued"] == 1

    response = client.post(f"/fiscal/sequences/{sequence_id}/reset", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["new_number"] == 1

    response = client.delete(f"/fiscal/sequences/{sequence_id}", headers=owner_headers)
    assert response.status_code == 204


def test_api_patch_with_null_padding(client, owner_headers, document_types):
    created = client.post("/fiscal/sequences", headers=owner_headers, json={
        "document_type_id": str(document_types["B02"].id), "prefix": "B02", "padding_length": 5
    }).json()

    response = client.patch(
        f"/fiscal/sequences/{created['id']}", headers=owner_headers,
        json={"prefix": "X-", "padding_length": None}
    )
    assert response.status_code == 200, response.text
    assert response.json()["prefix"] == "X-"
    assert response.json()["padding_length"] == 5


def test_api_duplicate_active_sequence_returns_409(client, owner_headers, document_types):
    payload = {"document_type_id": str(document_types["B02"].id), "prefix": "B02"}
    assert client.post("/fiscal/sequences", headers=owner_headers, json=payload).status_code == 201
    response = client.post("/fiscal/sequences", headers=owner_headers, json=payload)
    assert response.status_code == 409
    assert response.json()["error"] == "conflict_error"


def test_api_invalid_config_returns_422_with_errors(client, owner_headers, document_types):
    response = client.post("/fiscal/sequences", headers=owner_headers, json={
        "document_type_id": str(document_types["B02"].id), "padding_length": 0
    })
    assert response.status_code == 422
    assert response.json()["errors"]


def test_api_allocate_without_sequence_points_to_configuration(client, owner_headers, document_types):
    response = client.post(
        "/fiscal/allocate", headers=owner_headers, json={"document_type_id": str(document_types["B15"].id)}
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "no_active_sequence"
    assert body["redirect_url"] == settings.FISCAL_SEQUENCES_CONFIG_URL


def test_api_preview_and_validate_config(client, member_headers):
    response = client.post("/fiscal/sequences/preview", headers=member_headers, json={
        "prefix": "B01-", "suffix": "", "number": 5, "padding_length": 4
    })
    assert response.json()["formatted_number"] == "B01-0005"

    response = client.post("/fiscal/sequences/validate-config", headers=member_headers, json={
        "prefix": "DEMASIADO-LARGO", "initial_number": 1, "padding_length": 4
    })
    assert response.status_code == 200
    assert response.json()["is_valid"] is False


def test_api_member_cannot_configure_sequences(client, member_headers, document_types):
    response = client.post("/fiscal/sequences", headers=member_headers, json={
        "document_type_id": str(document_types["B01"].id)
    })
    assert response.status_code == 403


def test_api_admin_can_configure_sequences(client, admin_headers, document_types):
    response = client.post("/fiscal/sequences", headers=admin_headers, json={
        "document_type_id": str(document_types["B01"].id), "prefix": "B01"
    })
    assert response.status_code == 201


def test_api_validation_endpoints(client, owner_headers, document_types):
    type_id = str(document_types["COT"].id)
    response = client.get(f"/fiscal/validation/document-types/{type_id}", headers=owner_headers)
    assert response.json()["is_valid"] is False
    assert response.json()["missing_sequences"] == [type_id]

    client.post("/fiscal/sequences", headers=owner_headers, json={"document_type_id": type_id, "prefix": "COT-"})
    assert client.get("/fiscal/validation/quotes", headers=owner_headers).json()["is_valid"] is True
    assert client.get("/fiscal/validation/invoices", headers=owner_headers).json()["is_valid"] is False
    response = client.get("/fiscal/validation/all", headers=owner_headers)
    assert response.json()["missing_sequences"] == ["invoice"]
    response = client.get(f"/fiscal/validation/document-types/{type_id}/state", headers=owner_headers)
    assert response.json()["state"] == "active"


def test_api_document_types(client, owner_headers):
    response = client.get("/fiscal/document-types", headers=owner_headers, params={"category": "invoice"})
    assert {d["code"] for d in response.json()} == {"B01", "B02", "B15"}

    response = client.post("/fiscal/document-types", headers=owner_headers, json={
        "code": "b14", "name": "Régimen Especial", "category": "invoice"
    })
    assert response.status_code == 201
    assert response.json()["code"] == "B14"

    response = client.post("/fiscal/document-types", headers=owner_headers, json={
        "code": "B14", "name": "Duplicado"
    })
    assert response.status_code == 409


def test_api_requires_organization_context(client, owner):
    from conftest import login, auth_headers
    headers = auth_headers(login(client, owner.email))
    response = client.get("/fiscal/sequences", headers=headers)
    assert response.status_code == 400
