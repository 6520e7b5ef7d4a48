"""
Tests del módulo de autenticación

- Registro, login y cambio de contraseña
- Selección de organización y token de contexto
- Tabla de permisos por rol
"""
import pytest

from app.modules.auth.permissions import (
    Permission, Role, ROLE_PERMISSIONS, can_manage_member, get_permissions,
    has_all_permissions, has_any_permission, has_permission, parse_role
)
from app.modules.auth.utils import create_access_token, decode_token, hash_password, verify_password
from conftest import DEFAULT_PASSWORD, auth_headers, login


# ===== PERMISOS =====

def test_owner_has_every_permission():
    assert get_permissions(Role.OWNER) == frozenset(Permission)


def test_admin_cannot_manage_organization_or_members():
    admin = get_permissions("admin")
    assert Permission.MANAGE_FISCAL_DOCUMENTS in admin
    assert Permission.INVITE_MEMBERS in admin
    assert Permission.MANAGE_ORGANIZATION not in admin
    assert Permission.MANAGE_MEMBERS not in admin


def test_member_permissions():
    assert has_permission("member", Permission.MANAGE_INVOICES)
    assert has_permission("member", Permission.MANAGE_QUOTES)
    assert not has_permission("member", Permission.MANAGE_FISCAL_DOCUMENTS)
    assert not has_permission("member", Permission.MANAGE_SETTINGS)


def test_unknown_role_has_no_permissions():
    assert parse_role("superuser") is None
    assert get_permissions(None) == frozenset()
    assert not has_any_permission("superuser", list(Permission))


def test_any_and_all_permission_helpers():
    assert has_any_permission("member", [Permission.MANAGE_SETTINGS, Permission.VIEW_REPORTS])
    assert not has_all_permissions("member", [Permission.MANAGE_SETTINGS, Permission.VIEW_REPORTS])
    assert has_all_permissions("admin", [Permission.MANAGE_SETTINGS, Permission.VIEW_REPORTS])


def test_permission_table_is_immutable():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS[Role.MEMBER] = frozenset(Permission)


@pytest.mark.parametrize("actor,target,expected", [
    ("owner", "owner", True),
    ("owner", "admin", True),
    ("admin", "member", True),
    ("admin", "admin", False),
    ("admin", "owner", False),
    ("member", "member", False),
])
def test_can_manage_member(actor, target, expected):
    assert can_manage_member(actor, target) is expected


# ===== UTILIDADES =====

def test_password_hashing():
    hashed = hash_password("Clave12345")
    assert hashed != "Clave12345"
    assert verify_password("Clave12345", hashed)
    assert not verify_password("otra", hashed)


def test_access_token_round_trip():
    payload = decode_token(create_access_token({"sub": "abc"}))
    assert payload["sub"] == "abc"
    assert payload["type"] == "access"


# ===== ENDPOINTS =====

def test_register_and_login(client):
    response = client.post("/auth/register", json={
        "email": "Nueva@Empresa.do", "password": "Segura123", "full_name": "Nueva Usuaria"
    })
    assert response.status_code == 201
    assert response.json()["email"] == "nueva@empresa.do"

    response = client.post("/auth/login", data={"username": "nueva@empresa.do", "password": "Segura123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["organizations"] == []


def test_register_duplicate_email(client, owner):
    response = client.post("/auth/register", json={
        "email": owner.email, "password": "Segura123", "full_name": "Duplicada"
    })
    assert response.status_code == 400


def test_register_rejects_weak_password(client):
    response = client.post("/auth/register", json={
        "email": "debil@empresa.do", "password": "solotexto", "full_name": "Clave Débil"
    })
    assert response.status_code == 422


def test_login_with_wrong_password(client, owner):
    response = client.post("/auth/login", data={"username": owner.email, "password": "Incorrecta1"})
    assert response.status_code == 401


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code in (401, 403)


def test_select_organization_returns_context_token(client, owner, organization):
    token = login(client, owner.email)
    response = client.post(
        "/auth/select-organization", headers=auth_headers(token),
        json={"organization_id": str(organization.id)}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user_role"] == "owner"
    assert "manage_fiscal_documents" in body["permissions"]

    context = client.get("/auth/context", headers=auth_headers(body["access_token"])).json()
    assert context["organization_id"] == str(organization.id)
    assert context["user_role"] == "owner"

    # El token de contexto basta para las rutas de la organización
    assert client.get("/fiscal/sequences", headers=auth_headers(body["access_token"])).status_code == 200


def test_select_organization_without_membership(client, db, organization):
    from conftest import create_user
    outsider = create_user(db, "ajeno@otro.do")
    token = login(client, outsider.email)
    response = client.post(
        "/auth/select-organization", headers=auth_headers(token),
        json={"organization_id": str(organization.id)}
    )
    assert response.status_code == 403


def test_change_password(client, owner):
    token = login(client, owner.email)
    response = client.post("/auth/change-password", headers=auth_headers(token), json={
        "current_password": DEFAULT_PASSWORD, "new_password": "NuevaClave456"
    })
    assert response.status_code == 200
    assert login(client, owner.email, "NuevaClave456")


def test_change_password_with_wrong_current(client, owner):
    token = login(client, owner.email)
    response = client.post("/auth/change-password", headers=auth_headers(token), json={
        "current_password": "Equivocada1", "new_password": "NuevaClave456"
    })
    assert response.status_code == 400


def test_invalid_organization_header_is_rejected(client, owner):
    token = login(client, owner.email)
    response = client.get("/fiscal/sequences", headers={
        "Authorization": f"Bearer {token}", "X-Organization-ID": "no-es-un-uuid"
    })
    assert response.status_code == 400
