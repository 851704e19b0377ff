#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: conftest.py
# NG-HEADER: Ubicación: tests/conftest.py
# NG-HEADER: Descripción: Fixtures y configuración compartida de Pytest.
# NG-HEADER: Lineamientos: Ver AGENTS.md
import asyncio
import base64
import hashlib
import hmac
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
import pytest_asyncio

# Asegurar path del proyecto antes de importar módulos internos
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

# -------- Entorno base de tests --------
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "dev"
os.environ["SKU_PREFIX"] = "LA"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["SHOPIFY_API_SECRET"] = "test-secret"
os.environ["WEBHOOK_VERIFY_HMAC"] = "true"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import db.session as _session  # noqa: E402
import db.models  # noqa: F401,E402
from db.base import Base  # noqa: E402
from core.errors import CatalogWriteError, ProbeError  # noqa: E402
from services.skus.allocator import SkuAllocator  # noqa: E402
from services.skus.catalog import Catalog  # noqa: E402

SHOP = "demo-shop.myshopify.com"
WEBHOOK_SECRET = "test-secret"
ADMIN_TOKEN = "test-admin-token"


@pytest_asyncio.fixture(scope="function", autouse=True)
async def db_session():
    """DB limpia por test (SQLite memoria compartida). Retorna sesión para usar en fixtures/tests."""
    engine = _session.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with _session.SessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


class FakeCatalog(Catalog):
    """Catálogo en memoria: SKUs existentes, fallos inyectables y registro de llamadas."""

    def __init__(self, existing=None) -> None:
        self.existing: set[str] = set(existing or ())
        self.probe_calls: list[str] = []
        self.writes: list[tuple[str, str]] = []
        self.probe_fail_on: set[str] = set()
        self.write_fail_on: set[str] = set()
        self.script_tags: list[str] = []

    async def sku_exists(self, shop: str, sku: str) -> bool:
        await asyncio.sleep(0)
        self.probe_calls.append(sku)
        if sku in self.probe_fail_on:
            raise ProbeError(f"timeout consultando {sku}")
        return sku in self.existing

    async def write_variant_sku(self, shop: str, variant_id: str, sku: str) -> None:
        await asyncio.sleep(0)
        if variant_id in self.write_fail_on:
            raise CatalogWriteError(variant_id, "status=500 boom")
        self.writes.append((variant_id, sku))
        self.existing.add(sku)

    async def create_script_tag(self, src: str) -> dict:
        self.script_tags.append(src)
        return {"id": len(self.script_tags), "src": src, "event": "onload"}


@pytest.fixture()
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture()
def allocator() -> SkuAllocator:
    return SkuAllocator("LA")


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


@pytest_asyncio.fixture()
async def api_client(fake_catalog, allocator):
    """Cliente HTTP async contra la app con catálogo falso y asignador aislado."""
    import httpx
    from services.api import app
    from services.integrations.shopify import get_catalog_opener
    from services.skus.allocator import get_allocator

    @asynccontextmanager
    async def _open(session, shop):
        yield fake_catalog

    app.dependency_overrides[get_catalog_opener] = lambda: _open
    app.dependency_overrides[get_allocator] = lambda: allocator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
