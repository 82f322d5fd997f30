"""
Fixtures compartidas por los tests.
"""

import contextlib
from collections import namedtuple
from datetime import datetime, timedelta

import pytest

from activation import ActivationEngine
from admin_ops import AdminOperations
from app import create_app
from memory_store import InMemoryLicenseStore
from models import db
from store import SQLAlchemyLicenseStore
from usage import UsageRecorder

ADMIN_TOKEN = "test-admin-token"

# store + fábrica de contextos para usar el almacén desde otros hilos
Harness = namedtuple("Harness", ["store", "context"])


class FakeClock:
    """Reloj controlable para probar expiraciones"""

    def __init__(self, now=datetime(2026, 1, 31, 12, 0, 0)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sql_app(tmp_path):
    app = create_app("testing", overrides={
        "STORE_BACKEND": "sqlalchemy",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'licenses.db'}",
        "STORE_TIMEOUT_SECONDS": 30.0,
    })
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture(params=["memory", "sqlalchemy"])
def harness(request):
    if request.param == "memory":
        yield Harness(InMemoryLicenseStore(timeout=5.0), contextlib.nullcontext)
        return
    app = request.getfixturevalue("sql_app")
    yield Harness(SQLAlchemyLicenseStore(), app.app_context)


@pytest.fixture
def store(harness):
    return harness.store


@pytest.fixture
def engine(store, clock):
    return ActivationEngine(store, clock=clock)


@pytest.fixture
def admin(store, clock):
    return AdminOperations(store, key_prefix="BABYLON", clock=clock)


@pytest.fixture
def recorder(store, clock):
    return UsageRecorder(store, clock=clock)


@pytest.fixture
def make_license(admin):
    """Crea una licencia con valores por defecto razonables"""

    def _make(**kwargs):
        params = {
            "customer_email": "ana@example.com",
            "customer_name": "Ana",
            "plan_type": "single",
            "duration_months": 12,
            "max_activations": 1,
        }
        params.update(kwargs)
        return admin.create_license(**params)

    return _make


@pytest.fixture
def app():
    return create_app("testing")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
