from decimal import Decimal

from app.modules.fiscal.service import SequenceManager


def _quote_payload(document_type, **overrides):
    payload = {
        "document_type_id": str(document_type.id),
        "customer_name": "Ferretería Central",
        "valid_until": "2099-12-31",
        "items": [{"description": "Instalación eléctrica", "quantity": "3", "unit_price": "1000"}],
    }
    payload.update(overrides)
    return payload


def test_create_quote_uses_quote_sequence(client, db, member_headers, organization, document_types):
    cotizacion = document_types["COT"]
    SequenceManager(db).create_sequence(
        organization.id, cotizacion.id, {"prefix": "COT-", "padding_length": 5, "initial_number": 1}
    )

    first = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion))
    second = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion))

    assert first.status_code == 201, first.text
    assert first.json()["fiscal_number"] == "COT-00001"
    assert second.json()["fiscal_number"] == "COT-00002"
    assert first.json()["status"] == "draft"
    assert Decimal(first.json()["total"]) == Decimal("3540.00")


def test_quote_blocked_without_sequence(client, member_headers, document_types):
    response = client.post("/quotes/", headers=member_headers, json=_quote_payload(document_types["COT"]))
    assert response.status_code == 409
    assert response.json()["error"] == "no_active_sequence"


def test_invoice_document_type_cannot_be_used_for_quotes(client, db, member_headers, organization, document_types):
    consumo = document_types["B02"]
    SequenceManager(db).create_sequence(organization.id, consumo.id, {"prefix": "B02"})
    response = client.post("/quotes/", headers=member_headers, json=_quote_payload(consumo))
    assert response.status_code == 400


def test_valid_until_before_issue_date_is_rejected(client, member_headers, document_types):
    response = client.post("/quotes/", headers=member_headers, json=_quote_payload(
        document_types["COT"], issue_date="2026-05-10", valid_until="2026-05-01"
    ))
    assert response.status_code == 422


def test_list_and_get_quotes(client, db, member_headers, organization, document_types):
    cotizacion = document_types["COT"]
    SequenceManager(db).create_sequence(organization.id, cotizacion.id, {"prefix": "COT-"})
    created = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion)).json()

    listing = client.get("/quotes/", headers=member_headers).json()
    assert listing["total"] == 1
    assert client.get("/quotes/", headers=member_headers, params={"status": "accepted"}).json()["total"] == 0

    detail = client.get(f"/quotes/{created['id']}", headers=member_headers).json()
    assert Decimal(detail["line_items"][0]["quantity"]) == Decimal("3")


def _quote_sequence(db, organization, document_types):
    cotizacion = document_types["COT"]
    SequenceManager(db).create_sequence(organization.id, cotizacion.id, {"prefix": "COT-", "padding_length": 4})
    return cotizacion


def test_quote_status_transitions(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    created = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion)).json()
    url = f"/quotes/{created['id']}/status"

    assert client.patch(url, headers=member_headers, json={"status": "sent"}).json()["status"] == "sent"
    assert client.patch(url, headers=member_headers, json={"status": "draft"}).status_code == 400
    assert client.patch(url, headers=member_headers, json={"status": "rejected"}).json()["status"] == "rejected"
    # Estado final
    assert client.patch(url, headers=member_headers, json={"status": "accepted"}).status_code == 400

    listing = client.get("/quotes/", headers=member_headers, params={"status": "rejected"}).json()
    assert listing["total"] == 1


def test_convert_quote_to_invoice(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    consumo = document_types["B02"]
    SequenceManager(db).create_sequence(organization.id, consumo.id, {"prefix": "B02", "padding_length": 8})
    quote = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion, notes="Entrega en obra")).json()

    response = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(consumo.id)
    })

    assert response.status_code == 201, response.text
    invoice = response.json()
    assert invoice["fiscal_number"] == "B0200000001"
    assert invoice["customer_name"] == quote["customer_name"]
    assert Decimal(invoice["total"]) == Decimal(quote["total"])
    assert invoice["notes"].startswith(f"Convertido desde cotización {quote['fiscal_number']}")
    assert invoice["line_items"][0]["description"] == "Instalación eléctrica"

    converted = client.get(f"/quotes/{quote['id']}", headers=member_headers).json()
    assert converted["status"] == "accepted"
    assert converted["converted_invoice_id"] == invoice["id"]

    # Una sola conversión por cotización
    again = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(consumo.id)
    })
    assert again.status_code == 409
    assert client.get("/invoices/", headers=member_headers).json()["total"] == 1

    # Convertida, ya no cambia de estado
    assert client.patch(
        f"/quotes/{quote['id']}/status", headers=member_headers, json={"status": "expired"}
    ).status_code == 400


def test_convert_without_tax_keeps_tax_off(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    consumo = document_types["B02"]
    SequenceManager(db).create_sequence(organization.id, consumo.id, {"prefix": "B02"})
    quote = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion, apply_tax=False)).json()

    invoice = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(consumo.id)
    }).json()
    assert Decimal(invoice["tax_amount"]) == Decimal("0")
    assert Decimal(invoice["total"]) == Decimal("3000.00")


def test_convert_requires_active_invoice_sequence(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    quote = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion)).json()

    response = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(document_types["B02"].id)
    })
    assert response.status_code == 409
    assert response.json()["error"] == "no_active_sequence"

    unchanged = client.get(f"/quotes/{quote['id']}", headers=member_headers).json()
    assert unchanged["status"] == "draft"
    assert unchanged["converted_invoice_id"] is None


def test_convert_to_credito_fiscal_needs_customer_tax_id(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    credito = document_types["B01"]
    SequenceManager(db).create_sequence(organization.id, credito.id, {"prefix": "B01"})
    quote = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion)).json()

    response = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(credito.id)
    })
    assert response.status_code == 400


def test_convert_cannot_use_quote_document_type(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    quote = client.post("/quotes/", headers=member_headers, json=_quote_payload(cotizacion)).json()

    response = client.post(f"/quotes/{quote['id']}/convert", headers=member_headers, json={
        "document_type_id": str(cotizacion.id)
    })
    assert response.status_code == 400


def test_quote_for_registered_client(client, db, member_headers, organization, document_types):
    cotizacion = _quote_sequence(db, organization, document_types)
    registered = client.post("/clients/", headers=member_headers, json={
        "name": "Constructora Norte", "id_number": "00113918205"
    }).json()

    payload = _quote_payload(cotizacion, client_id=registered["id"])
    del payload["customer_name"]
    response = client.post("/quotes/", headers=member_headers, json=payload)
    assert response.status_code == 201, response.text
    assert response.json()["customer_tax_id"] == "001-1391820-5"

    listing = client.get("/quotes/", headers=member_headers, params={"client_id": registered["id"]}).json()
    assert listing["total"] == 1
