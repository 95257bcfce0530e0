"""
Pytest fixtures for the lubricentro POS tests.

Provides an in-memory local store, an in-memory remote backend seeded with a
small catalog, an aiosqlite-backed SqlBackend, the services wired together,
and a FastAPI test client.
"""

import os

# The module-level app in lubricentro.main uses an in-memory store and the demo backend.
os.environ["LOCAL_STORE_URL"] = "sqlite://"
os.environ.pop("DB_URL", None)

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from lubricentro.core.time_utils import utcnow
from lubricentro.db.base import init_models, make_engine, make_session_factory
from lubricentro.db.kv import MemoryStore
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.sales.service import SaleService
from lubricentro.domain.sync.service import SyncManager
from lubricentro.gateway.backend import MemoryBackend
from lubricentro.gateway.service import RemoteGateway
from lubricentro.gateway.sql import SqlBackend


def make_product(pid, barcode, name, stock, min_stock=5, price=100.0, cost=60.0, category="Aceites", age=0):
    created = utcnow() - timedelta(minutes=age)
    return {
        "id": pid,
        "barcode": barcode,
        "name": name,
        "brand": "Shell",
        "category": category,
        "price": price,
        "cost": cost,
        "stock": stock,
        "min_stock": min_stock,
        "supplier": "Distribuidora Norte",
        "description": "",
        "created_at": created,
        "updated_at": created,
    }


@pytest.fixture
def catalog():
    return [
        make_product("p-oil", "7790001234567", "Aceite Helix 10W-40", stock=10, min_stock=3, price=100.0, age=0),
        make_product("p-filter", "7790001234568", "Filtro Mann W712", stock=4, min_stock=5, price=50.0,
                     cost=30.0, category="Filtros", age=1),
        make_product("p-brake", "7790001234569", "Líquido de Frenos DOT 4", stock=0, min_stock=6, price=80.0,
                     cost=40.0, category="Frenos", age=2),
    ]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store):
    return OfflineCache(store)


@pytest.fixture
def backend(catalog):
    return MemoryBackend(catalog)


@pytest.fixture
def gateway(backend):
    return RemoteGateway(backend, principal="tester", timeout=2.0)


@pytest.fixture
def sales(gateway, cache):
    return SaleService(gateway, cache)


@pytest.fixture
def sync_manager(cache, gateway, sales):
    return SyncManager(cache, gateway, sales)


@pytest.fixture
async def sql_backend():
    """SqlBackend over a fresh in-memory SQLite database."""
    engine = make_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield SqlBackend(make_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def client(backend, store):
    from lubricentro.main import create_app

    app = create_app(store=store, backend=backend)
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer operator-1"}
