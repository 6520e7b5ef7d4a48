"""
Tests para el módulo de Gastos
"""
from decimal import Decimal


def _expense(client, headers, **overrides):
    payload = {
        "description": "Pago de luz",
        "amount": "3200.50",
        "category": "Servicios",
        "expense_date": "2024-03-05",
    }
    payload.update(overrides)
    return client.post("/expenses/", headers=headers, json=payload)


def test_create_expense(client, member_headers):
    response = _expense(client, member_headers)
    assert response.status_code == 201, response.text
    assert Decimal(response.json()["amount"]) == Decimal("3200.50")
    assert response.json()["expense_date"] == "2024-03-05"


def test_expense_amount_must_be_positive(client, owner_headers):
    assert _expense(client, owner_headers, amount="0").status_code == 422
    assert _expense(client, owner_headers, category="  ").status_code == 422


def test_filters_and_total_amount(client, owner_headers):
    _expense(client, owner_headers)
    _expense(client, owner_headers, description="Resma de papel", amount="450", category="Oficina",
             expense_date="2024-03-20")
    _expense(client, owner_headers, description="Agua", amount="800", expense_date="2024-04-02")

    listing = client.get("/expenses/", headers=owner_headers).json()
    assert listing["total"] == 3
    assert Decimal(listing["total_amount"]) == Decimal("4450.50")
    assert listing["items"][0]["description"] == "Agua"

    march = client.get("/expenses/", headers=owner_headers, params={
        "start_date": "2024-03-01", "end_date": "2024-03-31"
    }).json()
    assert march["total"] == 2
    assert Decimal(march["total_amount"]) == Decimal("3650.50")

    services = client.get("/expenses/", headers=owner_headers, params={"category": "Servicios"}).json()
    assert services["total"] == 2

    search = client.get("/expenses/", headers=owner_headers, params={"search": "papel"}).json()
    assert [e["description"] for e in search["items"]] == ["Resma de papel"]

    # La suma cubre todos los filtrados aunque se pagine
    page = client.get("/expenses/", headers=owner_headers, params={"limit": 1}).json()
    assert len(page["items"]) == 1
    assert Decimal(page["total_amount"]) == Decimal("4450.50")

    assert client.get("/expenses/categories", headers=owner_headers).json() == ["Oficina", "Servicios"]


def test_inverted_date_range_is_rejected(client, owner_headers):
    response = client.get("/expenses/", headers=owner_headers, params={
        "start_date": "2024-04-01", "end_date": "2024-03-01"
    })
    assert response.status_code == 400


def test_update_and_delete_expense(client, owner_headers):
    created = _expense(client, owner_headers).json()

    response = client.patch(f"/expenses/{created['id']}", headers=owner_headers, json={"amount": "3000"})
    assert response.status_code == 200
    assert Decimal(response.json()["amount"]) == Decimal("3000.00")

    response = client.patch(f"/expenses/{created['id']}", headers=owner_headers, json={"category": None})
    assert response.status_code == 400

    assert client.delete(f"/expenses/{created['id']}", headers=owner_headers).status_code == 204
    assert client.get(f"/expenses/{created['id']}", headers=owner_headers).status_code == 404
