import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="nepshop-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nepshop.create_admin import create_admin  # noqa: E402
from nepshop.database import Base, get_db  # noqa: E402
from nepshop.main import app  # noqa: E402

ADMIN_EMAIL = "admin@nepshop.com"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client, db):
    create_admin(db, "Admin", ADMIN_EMAIL, "9800000000", ADMIN_PASSWORD)
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return auth_header(response.json()["token"])


@pytest.fixture
def register(client):
    def _register(name="Sita", email=None, phone=None, password="secret123"):
        payload = {"name": name, "email": email, "phone": phone, "password": password}
        return client.post("/api/auth/register", json=payload)

    return _register


@pytest.fixture
def customer_headers(register):
    response = register(email="sita@example.com")
    assert response.status_code == 201
    return auth_header(response.json()["token"])


@pytest.fixture
def make_product(client, admin_headers):
    def _make_product(name="Tea", price=100.0, stock_quantity=10, **fields):
        data = {"name": name, "price": str(price), "stock_quantity": str(stock_quantity)}
        data.update({key: str(value) for key, value in fields.items()})
        response = client.post("/api/products", data=data, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["id"]

    return _make_product
