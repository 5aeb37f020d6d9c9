"""
Pytest fixtures for the Almacen backend.

Each test gets its own file-backed SQLite database so that separate sessions
(and threads) see the same data, plus a TestClient wired to it and bearer
headers for one user of each role.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./almacen-test.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from almacen.core.security import create_access_token, pwd_context
from almacen.db.base import Base
from almacen.db.session import build_engine, get_db
from almacen.main import app
from almacen.schemas.product import ProductCreate
from almacen.services import catalog, directory
from almacen.services.rbac import Role

# Cheap hashes keep the suite fast.
pwd_context.update(bcrypt__rounds=4)


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'almacen.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
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


@pytest.fixture()
def admin(db):
    return directory.register_user(db, "admin@example.com", "secret123", "Ana Admin", role=Role.ADMIN)


@pytest.fixture()
def manager(db):
    return directory.register_user(db, "manager@example.com", "secret123", "Mario Manager", role=Role.MANAGER)


@pytest.fixture()
def cashier(db):
    return directory.register_user(db, "cashier@example.com", "secret123", "Carla Cajera")


def auth_headers(user) -> dict:
    token = create_access_token(subject=str(user.id), email=user.email, token_version=user.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture()
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture()
def cashier_headers(cashier):
    return auth_headers(cashier)


@pytest.fixture()
def make_product(db, admin):
    def _make(name="Cafe", price=10.0, stock=10, code="", category=""):
        payload = ProductCreate(name=name, price=price, stock=stock, code=code, category=category)
        return catalog.create_product(db, payload, admin.id, admin.full_name)

    return _make
