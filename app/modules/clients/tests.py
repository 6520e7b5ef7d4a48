"""
Tests para el módulo de Clientes

- RNC/cédula validados, formateados y únicos por organización
- Soft delete y restore con re-chequeo de unicidad
- Aislamiento por organización
"""
import pytest

from app.modules.clients.models import IdType
from app.modules.clients.schemas import normalize_identification
from conftest import auth_headers, create_user, login


def _client_payload(**overrides):
    payload = {
        "name": "Ferretería Don Pedro",
        "email": "compras@donpedro.do",
        "phone": "809-555-1234",
        "id_number": "131246796",
        "city": "Santiago",
    }
    payload.update(overrides)
    return payload


def test_normalize_identification_infers_type_from_length():
    assert normalize_identification(None, "131246796") == (IdType.RNC, "1-31-24679-6")
    assert normalize_identification(None, "001-1391820-5") == (IdType.CEDULA, "001-1391820-5")
    assert normalize_identification(IdType.PASSPORT, " ab123456 ") == (IdType.PASSPORT, "AB123456")
    assert normalize_identification(None, "") == (None, None)


@pytest.mark.parametrize("id_type, id_number", [
    (None, "12345"),
    (IdType.RNC, "00113918205"),
    (IdType.CEDULA, "00113918206"),
])
def test_normalize_identification_rejects_mismatches(id_type, id_number):
    with pytest.raises(ValueError):
        normalize_identification(id_type, id_number)


def test_create_client_formats_identification(client, member_headers):
    response = client.post("/clients/", headers=member_headers, json=_client_payload())
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["id_type"] == "RNC"
    assert body["id_number"] == "1-31-24679-6"
    assert body["is_active"] is True


def test_create_client_rejects_bad_data(client, owner_headers):
    assert client.post("/clients/", headers=owner_headers, json=_client_payload(id_number="12345")).status_code == 422
    assert client.post("/clients/", headers=owner_headers, json=_client_payload(phone="abc")).status_code == 422
    assert client.post("/clients/", headers=owner_headers, json=_client_payload(email="no-es-email")).status_code == 422


def test_duplicate_document_in_same_organization_conflicts(client, owner_headers):
    assert client.post("/clients/", headers=owner_headers, json=_client_payload()).status_code == 201
    response = client.post(
        "/clients/", headers=owner_headers, json=_client_payload(name="Otro Nombre", id_number="1-31-24679-6")
    )
    assert response.status_code == 409


def test_clients_without_document_do_not_conflict(client, owner_headers):
    for name in ("Cliente Contado", "Cliente Contado 2"):
        response = client.post("/clients/", headers=owner_headers, json=_client_payload(name=name, id_number=None))
        assert response.status_code == 201


def test_list_search_and_stats(client, owner_headers):
    client.post("/clients/", headers=owner_headers, json=_client_payload())
    client.post("/clients/", headers=owner_headers, json=_client_payload(
        name="Colmado La Fe", id_number="00113918205", email=None
    ))

    listing = client.get("/clients/", headers=owner_headers, params={"search": "colmado"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id_type"] == "CEDULA"

    stats = client.get("/clients/stats", headers=owner_headers).json()
    assert stats["total_clients"] == 2
    assert stats["with_tax_id"] == 2
    assert stats["deleted_clients"] == 0


def test_update_client_revalidates_identification(client, owner_headers):
    created = client.post("/clients/", headers=owner_headers, json=_client_payload()).json()
    other = client.post("/clients/", headers=owner_headers, json=_client_payload(
        name="Otro Cliente", id_number="101010101"
    )).json()

    response = client.patch(f"/clients/{other['id']}", headers=owner_headers, json={"id_number": "131246796"})
    assert response.status_code == 409

    response = client.patch(f"/clients/{created['id']}", headers=owner_headers, json={"id_number": "99"})
    assert response.status_code == 400

    response = client.patch(
        f"/clients/{created['id']}", headers=owner_headers, json={"id_number": "00113918205", "city": "La Vega"}
    )
    assert response.status_code == 200
    assert response.json()["id_type"] == "CEDULA"
    assert response.json()["city"] == "La Vega"


def test_soft_delete_and_restore(client, owner_headers):
    created = client.post("/clients/", headers=owner_headers, json=_client_payload()).json()

    assert client.delete(f"/clients/{created['id']}", headers=owner_headers).status_code == 204
    assert client.get(f"/clients/{created['id']}", headers=owner_headers).status_code == 404
    assert client.get("/clients/", headers=owner_headers).json()["total"] == 0
    listing = client.get("/clients/", headers=owner_headers, params={"include_deleted": True}).json()
    assert listing["total"] == 1

    # El documento queda libre mientras el cliente está eliminado
    replacement = client.post("/clients/", headers=owner_headers, json=_client_payload(name="Reemplazo"))
    assert replacement.status_code == 201
    assert client.post(f"/clients/{created['id']}/restore", headers=owner_headers).status_code == 409

    client.delete(f"/clients/{replacement.json()['id']}", headers=owner_headers)
    restored = client.post(f"/clients/{created['id']}/restore", headers=owner_headers)
    assert restored.status_code == 200
    assert restored.json()["is_active"] is True
    assert restored.json()["deleted_at"] is None

    assert client.post(f"/clients/{created['id']}/restore", headers=owner_headers).status_code == 400


def test_clients_are_isolated_between_organizations(client, db, owner_headers, organization):
    created = client.post("/clients/", headers=owner_headers, json=_client_payload()).json()

    outsider = create_user(db, "otro@negocio.do", "Otro Negocio")
    token = login(client, outsider.email)
    response = client.post("/organizations/", headers=auth_headers(token), json={"name": "Otro Negocio SRL"})
    other_headers = auth_headers(token, response.json()["id"])

    assert client.get(f"/clients/{created['id']}", headers=other_headers).status_code == 404
    # El mismo RNC puede registrarse en otra organización
    assert client.post("/clients/", headers=other_headers, json=_client_payload()).status_code == 201
