"""
Tests para el módulo de Productos
"""
from decimal import Decimal


def _product(client, headers, **overrides):
    payload = {"name": "Consultoría", "sku": "SRV-001", "price": "1500", "category": "Servicios"}
    payload.update(overrides)
    return client.post("/products/", headers=headers, json=payload)


def test_create_product(client, member_headers):
    response = _product(client, member_headers)
    assert response.status_code == 201, response.text
    body = response.json()
    assert Decimal(body["price"]) == Decimal("1500.00")
    assert body["unit"] == "unidad"
    assert body["is_active"] is True


def test_sku_is_unique_per_organization(client, owner_headers):
    assert _product(client, owner_headers).status_code == 201
    assert _product(client, owner_headers, name="Otro").status_code == 409
    # Sin código no hay conflicto
    assert _product(client, owner_headers, name="Sin código A", sku=None).status_code == 201
    assert _product(client, owner_headers, name="Sin código B", sku="").status_code == 201


def test_negative_price_rejected(client, owner_headers):
    assert _product(client, owner_headers, price="-1").status_code == 422


def test_list_filters_and_categories(client, owner_headers):
    _product(client, owner_headers)
    _product(client, owner_headers, name="Cemento gris", sku="MAT-001", category="Materiales", price="450")
    inactive = _product(client, owner_headers, name="Varilla", sku="MAT-002", category="Materiales").json()
    client.post(f"/products/{inactive['id']}/toggle-active", headers=owner_headers)

    listing = client.get("/products/", headers=owner_headers).json()
    assert listing["total"] == 2

    listing = client.get("/products/", headers=owner_headers, params={"include_inactive": True}).json()
    assert listing["total"] == 3

    listing = client.get("/products/", headers=owner_headers, params={"category": "Materiales"}).json()
    assert [p["name"] for p in listing["items"]] == ["Cemento gris"]

    listing = client.get("/products/", headers=owner_headers, params={"search": "mat-00"}).json()
    assert listing["total"] == 1

    categories = client.get("/products/categories", headers=owner_headers).json()
    assert categories == ["Materiales", "Servicios"]


def test_update_and_toggle(client, owner_headers):
    created = _product(client, owner_headers).json()

    response = client.patch(f"/products/{created['id']}", headers=owner_headers, json={
        "price": "1750.50", "name": None
    })
    assert response.status_code == 200
    assert Decimal(response.json()["price"]) == Decimal("1750.50")
    assert response.json()["name"] == "Consultoría"

    toggled = client.post(f"/products/{created['id']}/toggle-active", headers=owner_headers).json()
    assert toggled["is_active"] is False


def test_delete_product(client, owner_headers):
    created = _product(client, owner_headers).json()
    assert client.delete(f"/products/{created['id']}", headers=owner_headers).status_code == 204
    assert client.get(f"/products/{created['id']}", headers=owner_headers).status_code == 404
