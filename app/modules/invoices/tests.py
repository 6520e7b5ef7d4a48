"""
Tests para el módulo de Facturas

- La factura toma su número de la secuencia fiscal activa
- Sin secuencia activa la creación se bloquea con enlace a configuración
- Totales con ITBIS y validación de RNC/cédula del cliente
- Aislamiento por organización
"""
from decimal import Decimal

from app.core.config import settings
from app.modules.fiscal.service import SequenceManager
from app.modules.invoices.models import Invoice


def _create_sequence(db, organization, document_type, **overrides):
    config = {"prefix": f"{document_type.code}", "padding_length": 8, "initial_number": 1}
    config.update(overrides)
    return SequenceManager(db).create_sequence(organization.id, document_type.id, config)


def _invoice_payload(document_type, **overrides):
    payload = {
        "document_type_id": str(document_type.id),
        "customer_name": "Supermercado La Esquina",
        "items": [
            {"description": "Consultoría", "quantity": "2", "unit_price": "1500.00"},
            {"description": "Soporte mensual", "quantity": "1", "unit_price": "250.50"},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_invoice_assigns_fiscal_number_and_totals(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["fiscal_number"] == "B0200000001"
    assert Decimal(body["subtotal"]) == Decimal("3250.50")
    assert Decimal(body["tax_amount"]) == Decimal("585.09")
    assert Decimal(body["total"]) == Decimal("3835.59")
    assert body["currency"] == settings.DEFAULT_CURRENCY
    assert body["status"] == "issued"
    assert len(body["line_items"]) == 2


def test_consecutive_invoices_get_consecutive_numbers(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo, prefix="F-", padding_length=3)

    numbers = [
        client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()["fiscal_number"]
        for _ in range(3)
    ]
    assert numbers == ["F-001", "F-002", "F-003"]


def test_invoice_without_tax_applies_no_itbis(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, apply_tax=False))
    body = response.json()
    assert Decimal(body["tax_amount"]) == Decimal("0")
    assert Decimal(body["total"]) == Decimal(body["subtotal"])


def test_invoice_blocked_without_active_sequence(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))

    assert response.status_code == 409
    assert response.json()["redirect_url"] == settings.FISCAL_SEQUENCES_CONFIG_URL
    assert db.query(Invoice).count() == 0


def test_invoice_blocked_when_sequence_inactive(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo, is_active=False)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))
    assert response.status_code == 409
    assert response.json()["error"] == "sequence_inactive"


def test_invoice_blocked_when_sequence_exhausted(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo, max_number=1)

    assert client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).status_code == 201
    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))
    assert response.status_code == 409
    assert response.json()["error"] == "sequence_exhausted"


def test_credito_fiscal_requires_customer_tax_id(client, db, owner_headers, organization, document_types):
    credito = document_types["B01"]
    _create_sequence(db, organization, credito)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(credito))
    assert response.status_code == 400

    response = client.post(
        "/invoices/", headers=owner_headers, json=_invoice_payload(credito, customer_tax_id="131246796")
    )
    assert response.status_code == 201
    assert response.json()["customer_tax_id"] == "1-31-24679-6"


def test_invalid_customer_tax_id_is_rejected(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)

    response = client.post(
        "/invoices/", headers=owner_headers, json=_invoice_payload(consumo, customer_tax_id="12345")
    )
    assert response.status_code == 400


def test_quote_document_type_cannot_be_used_for_invoices(client, db, owner_headers, organization, document_types):
    cotizacion = document_types["COT"]
    _create_sequence(db, organization, cotizacion)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(cotizacion))
    assert response.status_code == 400


def test_invoice_requires_at_least_one_item(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, items=[]))
    assert response.status_code == 422


def test_list_and_get_invoices(client, db, member_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    created = client.post("/invoices/", headers=member_headers, json=_invoice_payload(consumo)).json()

    listing = client.get("/invoices/", headers=member_headers).json()
    assert listing["total"] == 1
    assert listing["invoices"][0]["fiscal_number"] == created["fiscal_number"]

    detail = client.get(f"/invoices/{created['id']}", headers=member_headers)
    assert detail.status_code == 200
    assert detail.json()["line_items"][0]["description"] == "Consultoría"


def test_invoices_are_isolated_between_organizations(client, db, owner_headers, organization, document_types):
    from conftest import create_user, login, auth_headers
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    created = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()

    outsider = create_user(db, "otro@negocio.do", "Otro Negocio")
    token = login(client, outsider.email)
    response = client.post(
        "/organizations/", headers=auth_headers(token), json={"name": "Otro Negocio SRL"}
    )
    other_headers = auth_headers(token, response.json()["id"])

    assert client.get(f"/invoices/{created['id']}", headers=other_headers).status_code == 404
    assert client.get("/invoices/", headers=other_headers).json()["total"] == 0

    # Sin membresía en la organización original
    assert client.get("/invoices/", headers=auth_headers(token, organization.id)).status_code == 403


def _create_client(client, headers, **overrides):
    payload = {"name": "Distribuidora Caribe", "id_number": "131246796", "email": "pagos@caribe.do"}
    payload.update(overrides)
    response = client.post("/clients/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_invoice_for_registered_client_copies_its_data(client, db, owner_headers, organization, document_types):
    credito = document_types["B01"]
    _create_sequence(db, organization, credito)
    registered = _create_client(client, owner_headers)

    payload = _invoice_payload(credito, client_id=registered["id"])
    del payload["customer_name"]
    response = client.post("/invoices/", headers=owner_headers, json=payload)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["client_id"] == registered["id"]
    assert body["customer_name"] == "Distribuidora Caribe"
    assert body["customer_tax_id"] == "1-31-24679-6"
    assert body["customer_email"] == "pagos@caribe.do"

    listing = client.get("/invoices/", headers=owner_headers, params={"client_id": registered["id"]}).json()
    assert listing["total"] == 1


def test_invoice_requires_client_or_customer_name(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    payload = _invoice_payload(consumo)
    del payload["customer_name"]
    assert client.post("/invoices/", headers=owner_headers, json=payload).status_code == 422


def test_inactive_client_cannot_be_invoiced(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    registered = _create_client(client, owner_headers)
    client.patch(f"/clients/{registered['id']}", headers=owner_headers, json={"is_active": False})

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, client_id=registered["id"]))
    assert response.status_code == 400
    # El rechazo ocurre antes de asignar número
    assert db.query(Invoice).count() == 0
    assert client.get("/fiscal/sequences", headers=owner_headers).json()[0]["current_number"] == 1


def test_invoice_lines_from_product_catalog(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    product = client.post("/products/", headers=owner_headers, json={"name": "Licencia anual", "price": "12000"}).json()

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, apply_tax=False, items=[
        {"product_id": product["id"], "quantity": "2"},
        {"product_id": product["id"], "quantity": "1", "unit_price": "10000", "description": "Licencia con descuento"},
    ]))
    assert response.status_code == 201, response.text
    lines = response.json()["line_items"]
    assert lines[0]["description"] == "Licencia anual"
    assert Decimal(lines[0]["line_total"]) == Decimal("24000.00")
    assert lines[1]["product_id"] == product["id"]
    assert Decimal(response.json()["total"]) == Decimal("34000.00")

    # Las líneas emitidas no dependen del catálogo
    client.delete(f"/products/{product['id']}", headers=owner_headers)
    detail = client.get(f"/invoices/{response.json()['id']}", headers=owner_headers).json()
    assert detail["line_items"][0]["product_id"] is None
    assert detail["line_items"][0]["description"] == "Licencia anual"


def test_line_without_product_needs_description_and_price(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, items=[
        {"description": "Sin precio", "quantity": "1"}
    ]))
    assert response.status_code == 422


def test_inactive_product_cannot_fill_a_line(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    product = client.post("/products/", headers=owner_headers, json={"name": "Descontinuado", "price": "10"}).json()
    client.post(f"/products/{product['id']}/toggle-active", headers=owner_headers)

    response = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo, items=[
        {"product_id": product["id"], "quantity": "1"}
    ]))
    assert response.status_code == 400


def test_invoice_status_transitions(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    created = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()
    url = f"/invoices/{created['id']}/status"

    response = client.patch(url, headers=owner_headers, json={"status": "paid"})
    assert response.status_code == 200
    assert response.json()["status"] == "paid"

    # Una factura pagada no se anula
    assert client.patch(url, headers=owner_headers, json={"status": "void"}).status_code == 400
    assert client.patch(url, headers=owner_headers, json={"status": "paid"}).status_code == 400

    assert client.patch(url, headers=owner_headers, json={"status": "issued"}).json()["status"] == "issued"

    response = client.patch(url, headers=owner_headers, json={"status": "void", "reason": "Error en monto"})
    assert response.status_code == 200
    assert response.json()["status"] == "void"
    assert response.json()["notes"].endswith("[ANULADA] Error en monto")

    # Anulada es definitivo
    assert client.patch(url, headers=owner_headers, json={"status": "issued"}).status_code == 400


def test_voided_number_is_not_reused(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    first = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()
    client.patch(f"/invoices/{first['id']}/status", headers=owner_headers, json={"status": "void"})

    second = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()
    assert second["fiscal_number"] == "B0200000002"


def test_invoice_with_payments_cannot_be_voided(client, db, owner_headers, organization, document_types):
    consumo = document_types["B02"]
    _create_sequence(db, organization, consumo)
    client.post("/payment-accounts/", headers=owner_headers, json={"name": "Caja", "account_type": "caja_chica"})
    created = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo)).json()
    client.post("/payments/", headers=owner_headers, json={"invoice_id": created["id"], "amount": "100"})

    response = client.patch(f"/invoices/{created['id']}/status", headers=owner_headers, json={"status": "void"})
    assert response.status_code == 400


def test_same_number_allowed_across_document_types(client, db, owner_headers, organization, document_types):
    credito, consumo = document_types["B01"], document_types["B02"]
    _create_sequence(db, organization, credito, prefix="F-")
    consumo_sequence = _create_sequence(db, organization, consumo, prefix="F-")

    first = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(
        credito, customer_tax_id="131246796"
    ))
    second = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))

    assert first.status_code == 201, first.text
    assert second.status_code == 201, second.text
    assert first.json()["fiscal_number"] == second.json()["fiscal_number"] == "F-00000001"

    # Dentro del mismo tipo el número no se repite
    SequenceManager(db).reset_sequence(organization.id, consumo_sequence.id, reset_by=None)
    repeated = client.post("/invoices/", headers=owner_headers, json=_invoice_payload(consumo))
    assert repeated.status_code == 409
