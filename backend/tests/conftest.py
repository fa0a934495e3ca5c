from pathlib import Path
import io
import os
import tempfile
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--profile", action="store", default=None,
        help="application profile for this run (falls back to APP_PROFILE, then 'dev')",
    )


def pytest_configure(config):
    """Point the app at a throwaway database/upload dir before it is imported."""
    profile = (config.getoption("--profile") or os.environ.get("APP_PROFILE") or "dev").strip().lower()
    os.environ["APP_PROFILE"] = profile
    tmp = Path(tempfile.mkdtemp(prefix="wala-tests-"))
    os.environ["DATABASE_URL"] = f"sqlite:///{tmp / 'wala-test.db'}"
    os.environ["UPLOAD_DIR"] = str(tmp / "upload-dir")
    os.environ["SEED_DATA"] = "false"
    os.environ["SMTP_HOST"] = ""
    os.environ.setdefault("JWT_SECRET", "wala-test-secret-not-for-production")


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh tables, empty caches and carts for every test."""
    from wala.cache import cache
    from wala.database import create_db_and_tables, drop_db_and_tables
    from wala.main import carts, storage

    drop_db_and_tables()
    create_db_and_tables()
    cache.clear()
    carts.reset()
    storage.init()
    yield
    carts.reset()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from wala.main import app
    return TestClient(app)


@pytest.fixture
def db():
    from sqlmodel import Session
    from wala.database import engine
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(db):
    """Create a user directly through the service layer."""
    from wala import models, services

    counter = {"n": 0}

    def _make(email=None, password="secret", name="Test", surname="User", role=models.Role.USER):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        return services.AuthService(db).register(email, password, name, surname, role=role)

    return _make


@pytest.fixture
def make_product(db):
    from wala import models, repositories
    from wala.cache import cache

    def _make(owner, name="Product", price=10.0, category=models.ProductCategory.GAMING, **extra):
        p = repositories.ProductRepository(db).save(
            models.Product(name=name, price=price, category=category, owner_id=owner.id, **extra)
        )
        cache.clear()
        return p

    return _make


def login(client, email, password="secret"):
    """Sign in through the form so the auth cookie lands in the client jar."""
    r = client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)
    assert r.status_code == 303, r.text
    return r


def png_bytes(size=(200, 150), color=(200, 30, 30), fmt="PNG") -> bytes:
    from PIL import Image
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()
