# NG-HEADER: Nombre de archivo: session.py
# NG-HEADER: Ubicación: db/session.py
# NG-HEADER: Descripción: Creación del engine y sesiones de SQLAlchemy.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Sesión asíncrona para SQLAlchemy."""
import os
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import settings

# ``DEBUG_SQL=1`` activa el modo ``echo`` para ver las consultas generadas y
# facilitar la depuración de bloqueos sobre store_counters.
ECHO = os.getenv("DEBUG_SQL", "0") == "1"

# Priorizar variable de entorno DB_URL si está definida (p. ej., tests la setean a :memory:)
db_url = os.getenv("DB_URL") or settings.db_url
kwargs: dict = {"echo": ECHO, "pool_pre_ping": True}
if db_url.startswith("sqlite+") and ":memory:" in db_url:
    # Usar una DB en memoria compartida y con nombre para múltiples conexiones
    # Referencia: https://www.sqlite.org/inmemorydb.html (URI mode)
    db_url = "sqlite+aiosqlite:///file:skuseq_mem?mode=memory&cache=shared&uri=true"
    kwargs["poolclass"] = StaticPool


def enable_sqlite_transactions(async_engine: AsyncEngine) -> AsyncEngine:
    """Transacciones explícitas (``BEGIN IMMEDIATE``) para SQLite en archivo.

    El driver sqlite3 abre transacciones por su cuenta y rompe los SAVEPOINT
    que usa el ledger; con ``isolation_level=None`` el BEGIN lo emite
    SQLAlchemy. IMMEDIATE toma el lock de escritura al empezar, así dos
    conexiones concurrentes se serializan en vez de fallar al promover el lock.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _no_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return async_engine


engine = create_async_engine(db_url, **kwargs)
if db_url.startswith("sqlite+") and "mode=memory" not in db_url:
    enable_sqlite_transactions(engine)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

_schema_initialized = False


async def _ensure_schema_if_memory() -> None:
    global _schema_initialized
    if _schema_initialized:
        return
    url = str(engine.url)
    if url.startswith("sqlite+") and "mode=memory" in url:
        # Importar modelos para poblar la metadata
        import db.models  # noqa: F401
        from db.base import Base  # import local para evitar ciclos
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    _schema_initialized = True


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    await _ensure_schema_if_memory()
    async with SessionLocal() as session:
        yield session


# Compatibilidad: algunos módulos esperan ``get_db`` como alias.
get_db = get_session
