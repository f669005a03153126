import os
import tempfile

# Banco e storage de teste em diretório temporário (antes de importar o app)
_TMP = tempfile.mkdtemp(prefix="fundflow-tests-")
os.environ["FUNDFLOW_ENV"] = "lab"
os.environ["FUNDFLOW_DATABASE_URL"] = f"sqlite:///{_TMP}/test.db"
os.environ["FUNDFLOW_STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["FUNDFLOW_AUTH_JWT_SECRET"] = "test-secret-" + "x" * 40
os.environ["FUNDFLOW_BOOTSTRAP_ADMIN_EMAIL"] = "admin@example.com"
os.environ["FUNDFLOW_BOOTSTRAP_ADMIN_PASSWORD"] = "admin-pass"

import pytest
from fastapi.testclient import TestClient

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture(scope="session", autouse=True)
def _ensure_tables_exist():
    from fundflow.db import Base, engine, import_all_models

    import_all_models()
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def _clean_db():
    yield
    from fundflow.db import Base, engine

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    from fundflow.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from fundflow.main import app

    # o lifespan cria o admin de bootstrap
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def login(client, email, password):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_header(client):
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def auth_header(client):
    r = client.post(
        "/auth/register",
        json={"email": "employee@example.com", "password": "secret1", "display_name": "Employee"},
    )
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def make_category(db):
    from fundflow.models.category import Category

    def _make(title, balance_minor=0, kind="general"):
        c = Category(title=title, kind=kind, balance_minor=balance_minor)
        db.add(c)
        db.commit()
        db.refresh(c)
        return c.id

    return _make


@pytest.fixture
def balance_of(db):
    from fundflow.models.category import Category

    def _balance(category_id):
        db.expire_all()
        return db.get(Category, category_id).balance_minor

    return _balance


@pytest.fixture
def reauth(client):
    def _reauth(headers, password):
        r = client.post("/auth/reauthenticate", json={"password": password}, headers=headers)
        assert r.status_code == 200, r.text
        return {**headers, "X-Reauth-Token": r.json()["reauth_token"]}

    return _reauth
