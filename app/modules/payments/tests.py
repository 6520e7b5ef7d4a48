"""
Tests para el módulo de Pagos

- Cuenta por defecto única y validación de cuentas configuradas
- Los pagos mueven el saldo de la cuenta y el estado de la factura
"""
from decimal import Decimal
from uuid import UUID

from app.core.config import settings
from app.modules.fiscal.service import SequenceManager
from app.modules.payments.models import PaymentAccount


def _account(client, headers, **overrides):
    payload = {"name": "Caja chica", "account_type": "caja_chica", "initial_balance": "500"}
    payload.update(overrides)
    return client.post("/payment-accounts/", headers=headers, json=payload)


def _invoice(client, db, headers, organization, document_types, total="1000"):
    consumo = document_types["B02"]
    SequenceManager(db).create_sequence(organization.id, consumo.id, {"prefix": "B02"})
    response = client.post("/invoices/", headers=headers, json={
        "document_type_id": str(consumo.id),
        "customer_name": "Cliente Contado",
        "apply_tax": False,
        "items": [{"description": "Servicio", "quantity": "1", "unit_price": total}],
    })
    assert response.status_code == 201, response.text
    return response.json()


def test_first_account_becomes_default(client, admin_headers):
    first = _account(client, admin_headers).json()
    assert first["is_default"] is True
    assert Decimal(first["current_balance"]) == Decimal("500.00")

    second = _account(client, admin_headers, name="Banco Popular", account_type="banco").json()
    assert second["is_default"] is False

    third = _account(client, admin_headers, name="Banreservas", account_type="banco", is_default=True).json()
    assert third["is_default"] is True

    accounts = client.get("/payment-accounts/", headers=admin_headers).json()
    assert [a["name"] for a in accounts if a["is_default"]] == ["Banreservas"]


def test_account_names_are_unique(client, admin_headers):
    assert _account(client, admin_headers).status_code == 201
    assert _account(client, admin_headers).status_code == 409


def test_members_can_read_but_not_configure_accounts(client, admin_headers, member_headers):
    assert _account(client, member_headers).status_code == 403
    _account(client, admin_headers)
    assert client.get("/payment-accounts/", headers=member_headers).status_code == 200


def test_set_default_and_deactivate(client, admin_headers):
    caja = _account(client, admin_headers).json()
    banco = _account(client, admin_headers, name="Banco", account_type="banco").json()

    response = client.post(f"/payment-accounts/{banco['id']}/set-default", headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/payment-accounts/default", headers=admin_headers).json()["id"] == banco["id"]

    # Desactivar la cuenta por defecto le quita la marca
    response = client.patch(f"/payment-accounts/{banco['id']}", headers=admin_headers, json={"is_active": False})
    assert response.json()["is_default"] is False
    assert client.get("/payment-accounts/default", headers=admin_headers).status_code == 404

    response = client.post(f"/payment-accounts/{banco['id']}/set-default", headers=admin_headers)
    assert response.status_code == 400

    client.post(f"/payment-accounts/{caja['id']}/set-default", headers=admin_headers)
    assert client.get("/payment-accounts/default", headers=admin_headers).json()["id"] == caja["id"]


def test_validation_points_to_account_configuration(client, admin_headers):
    result = client.get("/payment-accounts/validation", headers=admin_headers).json()
    assert result["is_valid"] is False
    assert result["accounts_count"] == 0
    assert result["redirect_url"] == settings.PAYMENT_ACCOUNTS_CONFIG_URL

    _account(client, admin_headers)
    result = client.get("/payment-accounts/validation", headers=admin_headers).json()
    assert result["is_valid"] is True
    assert result["accounts_count"] == 1
    assert result["redirect_url"] is None


def test_payment_without_accounts_is_blocked(client, db, owner_headers, organization, document_types):
    invoice = _invoice(client, db, owner_headers, organization, document_types)
    response = client.post("/payments/", headers=owner_headers, json={
        "invoice_id": invoice["id"], "amount": "100"
    })
    assert response.status_code == 409
    assert response.json()["detail"]["redirect_url"] == settings.PAYMENT_ACCOUNTS_CONFIG_URL


def test_partial_and_full_payment(client, db, owner_headers, organization, document_types):
    account = _account(client, owner_headers).json()
    invoice = _invoice(client, db, owner_headers, organization, document_types)

    response = client.post("/payments/", headers=owner_headers, json={
        "invoice_id": invoice["id"], "amount": "400", "method": "transferencia", "reference": "TRX-1"
    })
    assert response.status_code == 201, response.text
    assert response.json()["payment_account_id"] == account["id"]

    detail = client.get(f"/invoices/{invoice['id']}", headers=owner_headers).json()
    assert detail["status"] == "issued"
    assert Decimal(detail["paid_amount"]) == Decimal("400.00")
    assert Decimal(detail["balance_due"]) == Decimal("600.00")

    # Más que el saldo pendiente
    response = client.post("/payments/", headers=owner_headers, json={"invoice_id": invoice["id"], "amount": "601"})
    assert response.status_code == 400

    client.post("/payments/", headers=owner_headers, json={"invoice_id": invoice["id"], "amount": "600"})
    detail = client.get(f"/invoices/{invoice['id']}", headers=owner_headers).json()
    assert detail["status"] == "paid"
    assert Decimal(detail["balance_due"]) == Decimal("0.00")

    balance = client.get(f"/payment-accounts/{account['id']}", headers=owner_headers).json()["current_balance"]
    assert Decimal(balance) == Decimal("1500.00")

    listing = client.get("/payments/", headers=owner_headers, params={"invoice_id": invoice["id"]}).json()
    assert listing["total"] == 2
    assert Decimal(listing["total_amount"]) == Decimal("1000.00")


def test_deleting_payment_reopens_invoice_and_restores_balance(client, db, owner_headers, organization, document_types):
    account = _account(client, owner_headers, initial_balance="0").json()
    invoice = _invoice(client, db, owner_headers, organization, document_types)
    payment = client.post("/payments/", headers=owner_headers, json={
        "invoice_id": invoice["id"], "amount": "1000"
    }).json()

    assert client.delete(f"/payments/{payment['id']}", headers=owner_headers).status_code == 204

    detail = client.get(f"/invoices/{invoice['id']}", headers=owner_headers).json()
    assert detail["status"] == "issued"
    assert Decimal(detail["paid_amount"]) == Decimal("0.00")
    db.expire_all()
    stored = db.get(PaymentAccount, UUID(account["id"]))
    assert stored.current_balance == Decimal("0.00")


def test_update_payment_amount_adjusts_balance(client, db, owner_headers, organization, document_types):
    account = _account(client, owner_headers, initial_balance="0").json()
    invoice = _invoice(client, db, owner_headers, organization, document_types)
    payment = client.post("/payments/", headers=owner_headers, json={
        "invoice_id": invoice["id"], "amount": "1000"
    }).json()

    response = client.patch(f"/payments/{payment['id']}", headers=owner_headers, json={
        "amount": "250", "reference": "Corrección"
    })
    assert response.status_code == 200
    assert response.json()["reference"] == "Corrección"

    detail = client.get(f"/invoices/{invoice['id']}", headers=owner_headers).json()
    assert detail["status"] == "issued"
    balance = client.get(f"/payment-accounts/{account['id']}", headers=owner_headers).json()["current_balance"]
    assert Decimal(balance) == Decimal("250.00")

    response = client.patch(f"/payments/{payment['id']}", headers=owner_headers, json={"amount": "1000.01"})
    assert response.status_code == 400


def test_inactive_account_cannot_receive_payments(client, db, owner_headers, organization, document_types):
    _account(client, owner_headers)
    banco = _account(client, owner_headers, name="Banco", account_type="banco").json()
    client.patch(f"/payment-accounts/{banco['id']}", headers=owner_headers, json={"is_active": False})
    invoice = _invoice(client, db, owner_headers, organization, document_types)

    response = client.post("/payments/", headers=owner_headers, json={
        "invoice_id": invoice["id"], "amount": "10", "payment_account_id": banco["id"]
    })
    assert response.status_code == 400


def test_account_with_payments_cannot_be_deleted(client, db, owner_headers, organization, document_types):
    account = _account(client, owner_headers).json()
    invoice = _invoice(client, db, owner_headers, organization, document_types)
    client.post("/payments/", headers=owner_headers, json={"invoice_id": invoice["id"], "amount": "10"})

    assert client.delete(f"/payment-accounts/{account['id']}", headers=owner_headers).status_code == 409

    unused = _account(client, owner_headers, name="Sin uso", account_type="digital").json()
    assert client.delete(f"/payment-accounts/{unused['id']}", headers=owner_headers).status_code == 204


def test_voided_invoice_rejects_payments(client, db, owner_headers, organization, document_types):
    _account(client, owner_headers)
    invoice = _invoice(client, db, owner_headers, organization, document_types)
    client.patch(f"/invoices/{invoice['id']}/status", headers=owner_headers, json={"status": "void"})

    response = client.post("/payments/", headers=owner_headers, json={"invoice_id": invoice["id"], "amount": "10"})
    assert response.status_code == 400
