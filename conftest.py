"""
Fixtures compartidas para los tests de los módulos.

Los tests corren contra una base SQLite en archivo (varias conexiones reales)
para que la asignación concurrente use el UPDATE atómico de la base de datos.
"""
import os
import tempfile

_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"facturasaas_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("APP_SECRET_STRING", "test-secret-key-not-for-production-use-0123456789")

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.database.database import Base, SessionLocal, engine
from app.modules.auth.models import User, UserOrganization
from app.modules.auth.utils import hash_password
from app.modules.email.tasks import send_invitation_email_task
from app.modules.fiscal.registry import ensure_default_document_types
from app.modules.fiscal.models import FiscalDocumentType
from app.modules.organizations.models import Organization

DEFAULT_PASSWORD = "Secreta123"


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(_TEST_DB_PATH):
        os.remove(_TEST_DB_PATH)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def sent_invitations(monkeypatch):
    """Reemplaza el envío por Celery y guarda los argumentos de cada invitación."""
    sent = []

    def fake_delay(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(send_invitation_email_task, "delay", fake_delay)
    return sent


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def create_user(db, email: str, full_name: str = "Usuario Prueba", password: str = DEFAULT_PASSWORD) -> User:
    user = User(email=email, password=hash_password(password), full_name=full_name, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_membership(db, user: User, organization: Organization, role: str) -> UserOrganization:
    membership = UserOrganization(user_id=user.id, organization_id=organization.id, role=role, is_active=True)
    db.add(membership)
    db.commit()
    return membership


def login(client, email: str, password: str = DEFAULT_PASSWORD) -> str:
    response = client.post("/auth/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_headers(token: str, organization_id=None) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    if organization_id is not None:
        headers["X-Organization-ID"] = str(organization_id)
    return headers


@pytest.fixture
def owner(db):
    return create_user(db, "owner@empresa.do", "Dueña Empresa")


@pytest.fixture
def organization(db, owner):
    organization = Organization(name="Comercial Prueba SRL", slug="comercial-prueba")
    db.add(organization)
    db.commit()
    db.refresh(organization)
    add_membership(db, owner, organization, "owner")
    ensure_default_document_types(db, organization.id)
    return organization


@pytest.fixture
def document_types(db, organization):
    """Tipos de comprobante por defecto indexados por código."""
    types = db.query(FiscalDocumentType).filter(
        FiscalDocumentType.organization_id == organization.id
    ).all()
    return {t.code: t for t in types}


@pytest.fixture
def owner_headers(client, owner, organization):
    return auth_headers(login(client, owner.email), organization.id)


@pytest.fixture
def admin_headers(client, db, organization):
    admin = create_user(db, "admin@empresa.do", "Admin Empresa")
    add_membership(db, admin, organization, "admin")
    return auth_headers(login(client, admin.email), organization.id)


@pytest.fixture
def member_headers(client, db, organization):
    member = create_user(db, "member@empresa.do", "Miembro Empresa")
    add_membership(db, member, organization, "member")
    return auth_headers(login(client, member.email), organization.id)
