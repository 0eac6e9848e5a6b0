import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.db import Base, enable_sqlite_foreign_keys, get_db
from models.user import Role, User
from models.store import Store
from security.password import hash_password
from security import jwt as jwt_utils

PASSWORD = "Passw0rd!"


@pytest.fixture()
def db():
    """Fresh in-memory database per test, shared with the app through get_db."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c


def _make_user(db, name, email, role=Role.USER, password=PASSWORD, address=None):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        address=address,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _make_store(db, owner, name="Corner Coffee Roasters Ltd", email="coffee@example.com", address="12 Market Street"):
    store = Store(owner_id=owner.id, name=name, email=email, address=address)
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def _headers_for(user):
    return {"Authorization": f"Bearer {jwt_utils.issue_token(user.id, user.role)}"}


@pytest.fixture
def test_user(db):
    return _make_user(db, "Regular Rating User Person", "user@example.com", address="1 Main Road")


@pytest.fixture
def test_owner(db):
    return _make_user(db, "Store Owning Person Number One", "owner@example.com", role=Role.OWNER)


@pytest.fixture
def other_owner(db):
    return _make_user(db, "Store Owning Person Number Two", "owner2@example.com", role=Role.OWNER)


@pytest.fixture
def test_admin(db):
    return _make_user(db, "System Administrator Account", "admin@example.com", role=Role.ADMIN)


@pytest.fixture
def test_store(db, test_owner):
    return _make_store(db, test_owner)


@pytest.fixture
def user_headers(test_user):
    return _headers_for(test_user)


@pytest.fixture
def owner_headers(test_owner):
    return _headers_for(test_owner)


@pytest.fixture
def admin_headers(test_admin):
    return _headers_for(test_admin)


@pytest.fixture
def make_user(db):
    def _make(name, email, role=Role.USER, password=PASSWORD, address=None):
        return _make_user(db, name, email, role=role, password=password, address=address)
    return _make


@pytest.fixture
def make_store(db):
    def _make(owner, name, email, address="12 Market Street"):
        return _make_store(db, owner, name=name, email=email, address=address)
    return _make


@pytest.fixture
def auth_headers():
    """Build bearer headers for any user."""
    return _headers_for
