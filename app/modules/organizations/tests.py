"""
Tests del módulo de organizaciones

- Alta con membresía de propietario y tipos de comprobante por defecto
- Gestión de miembros según rol
- Invitaciones (envío encolado y aceptación)
"""
from uuid import UUID

from app.modules.auth.models import OrganizationInvitation, UserOrganization
from app.modules.fiscal.models import FiscalDocumentType
from app.modules.organizations.service import slugify
from conftest import auth_headers, create_user, login


def test_slugify():
    assert slugify("Panadería José & Hijos") == "panaderia-jose-hijos"
    assert slugify("!!!") == "organizacion"


def test_create_organization_seeds_owner_and_document_types(client, db, owner):
    token = login(client, owner.email)
    response = client.post("/organizations/", headers=auth_headers(token), json={
        "name": "Colmado El Sol", "tax_id": "131246796", "phone": "+1 809 555 1234"
    })
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["user_role"] == "owner"
    assert body["slug"] == "colmado-el-sol"
    assert body["tax_id"] == "1-31-24679-6"

    codes = {
        code for (code,) in db.query(FiscalDocumentType.code).filter(
            FiscalDocumentType.organization_id == UUID(body["id"])
        )
    }
    assert codes == {"B01", "B02", "B04", "B15", "COT"}

    mine = client.get("/organizations/mine", headers=auth_headers(token)).json()
    assert [o["name"] for o in mine] == ["Colmado El Sol"]


def test_duplicate_names_get_unique_slugs(client, owner):
    token = login(client, owner.email)
    first = client.post("/organizations/", headers=auth_headers(token), json={"name": "Mi Negocio"}).json()
    second = client.post("/organizations/", headers=auth_headers(token), json={"name": "Mi Negocio"}).json()
    assert first["slug"] == "mi-negocio"
    assert second["slug"] == "mi-negocio-2"


def test_create_organization_rejects_invalid_rnc(client, owner):
    token = login(client, owner.email)
    response = client.post("/organizations/", headers=auth_headers(token), json={
        "name": "RNC Malo", "tax_id": "123"
    })
    assert response.status_code == 422


def test_update_current_organization_requires_owner(client, owner_headers, admin_headers):
    response = client.patch("/organizations/current", headers=admin_headers, json={"name": "Nuevo Nombre"})
    assert response.status_code == 403

    response = client.patch("/organizations/current", headers=owner_headers, json={"name": "Nuevo Nombre"})
    assert response.status_code == 200
    assert response.json()["name"] == "Nuevo Nombre"


def test_list_members(client, owner_headers, member_headers):
    members = client.get("/organizations/current/members", headers=owner_headers).json()
    assert {m["role"] for m in members} == {"owner", "member"}


def test_owner_changes_member_role(client, db, owner_headers, organization):
    member = create_user(db, "cajero@empresa.do", "Cajero")
    db.add(UserOrganization(user_id=member.id, organization_id=organization.id, role="member"))
    db.commit()

    response = client.patch(
        f"/organizations/current/members/{member.id}", headers=owner_headers, json={"role": "admin"}
    )
    assert response.status_code == 200
    assert response.json()["role"] == "admin"


def test_admin_cannot_change_roles(client, db, admin_headers, organization):
    member = create_user(db, "vendedor@empresa.do", "Vendedor")
    db.add(UserOrganization(user_id=member.id, organization_id=organization.id, role="member"))
    db.commit()

    response = client.patch(
        f"/organizations/current/members/{member.id}", headers=admin_headers, json={"role": "admin"}
    )
    assert response.status_code == 403


def test_owner_cannot_modify_own_membership(client, owner, owner_headers):
    response = client.delete(f"/organizations/current/members/{owner.id}", headers=owner_headers)
    assert response.status_code == 400


def test_remove_member(client, db, owner_headers, organization):
    member = create_user(db, "temporal@empresa.do", "Temporal")
    db.add(UserOrganization(user_id=member.id, organization_id=organization.id, role="member"))
    db.commit()

    response = client.delete(f"/organizations/current/members/{member.id}", headers=owner_headers)
    assert response.status_code == 204

    token = login(client, member.email)
    response = client.get("/fiscal/sequences", headers=auth_headers(token, organization.id))
    assert response.status_code == 403


def test_co_owner_demotion_removes_member_management(client, db, owner, organization):
    co_owner = create_user(db, "socio@empresa.do", "Socio")
    db.add(UserOrganization(user_id=co_owner.id, organization_id=organization.id, role="owner"))
    db.commit()
    headers = auth_headers(login(client, co_owner.email), organization.id)

    response = client.patch(
        f"/organizations/current/members/{owner.id}", headers=headers, json={"role": "member"}
    )
    assert response.status_code == 200

    owner_token_headers = auth_headers(login(client, owner.email), organization.id)
    response = client.patch(
        f"/organizations/current/members/{co_owner.id}", headers=owner_token_headers, json={"role": "member"}
    )
    assert response.status_code == 403


def test_invite_new_user_and_accept(client, db, owner_headers, organization, sent_invitations):
    response = client.post("/organizations/current/invitations", headers=owner_headers, json={
        "email": "Contadora@Empresa.do", "role": "admin"
    })
    assert response.status_code == 201
    assert response.json()["invitee_email"] == "contadora@empresa.do"

    assert len(sent_invitations) == 1
    sent = sent_invitations[0]
    assert sent["invitee_email"] == "contadora@empresa.do"
    assert sent["organization_name"] == organization.name
    assert sent["role"] == "admin"

    token = sent["invitation_token"]
    response = client.post("/organizations/invitations/accept", json={"token": token})
    assert response.status_code == 400

    response = client.post("/organizations/invitations/accept", json={
        "token": token, "password": "Contable123", "full_name": "Contadora Pérez"
    })
    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    headers = auth_headers(login(client, "contadora@empresa.do", "Contable123"), organization.id)
    assert client.get("/fiscal/sequences", headers=headers).status_code == 200

    response = client.post("/organizations/invitations/accept", json={"token": token})
    assert response.status_code == 400


def test_existing_user_accepts_invitation(client, db, owner_headers, organization, sent_invitations):
    existing = create_user(db, "existente@otro.do", "Existente")
    client.post("/organizations/current/invitations", headers=owner_headers, json={"email": existing.email})

    response = client.post(
        "/organizations/invitations/accept", json={"token": sent_invitations[0]["invitation_token"]}
    )
    assert response.status_code == 200
    assert response.json()["user_id"] == str(existing.id)


def test_reinvite_renews_token(client, db, owner_headers, sent_invitations):
    payload = {"email": "repetido@empresa.do"}
    client.post("/organizations/current/invitations", headers=owner_headers, json=payload)
    client.post("/organizations/current/invitations", headers=owner_headers, json=payload)

    assert len(sent_invitations) == 2
    assert sent_invitations[0]["invitation_token"] != sent_invitations[1]["invitation_token"]
    assert db.query(OrganizationInvitation).count() == 1


def test_admin_can_only_invite_members(client, admin_headers, sent_invitations):
    response = client.post("/organizations/current/invitations", headers=admin_headers, json={
        "email": "otro.admin@empresa.do", "role": "admin"
    })
    assert response.status_code == 403

    response = client.post("/organizations/current/invitations", headers=admin_headers, json={
        "email": "nuevo.miembro@empresa.do", "role": "member"
    })
    assert response.status_code == 201
    assert len(sent_invitations) == 1


def test_member_cannot_invite(client, member_headers):
    response = client.post("/organizations/current/invitations", headers=member_headers, json={
        "email": "alguien@empresa.do"
    })
    assert response.status_code == 403


def test_inviting_existing_member_is_rejected(client, owner, owner_headers):
    response = client.post("/organizations/current/invitations", headers=owner_headers, json={
        "email": owner.email
    })
    assert response.status_code == 400
