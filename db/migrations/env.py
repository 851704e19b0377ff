# NG-HEADER: Nombre de archivo: env.py
# NG-HEADER: Ubicación: db/migrations/env.py
# NG-HEADER: Descripción: Script de entorno Alembic: carga .env, prepara logging y ejecuta migraciones
# NG-HEADER: Lineamientos: Ver AGENTS.md
import os
import logging
import traceback
from pathlib import Path
from logging.config import fileConfig
from urllib.parse import urlsplit

from alembic import context
from sqlalchemy import engine_from_config
from sqlalchemy.pool import NullPool
from dotenv import load_dotenv

# Logger estandar para todas las operaciones del módulo
logger = logging.getLogger("alembic.env")

# Config Alembic
config = context.config

# Logging (si alembic.ini tiene secciones de logging)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# === Cargar variables desde .env ===
REPO_ROOT = Path(__file__).resolve().parents[2]
dotenv_path = REPO_ROOT / ".env"
load_dotenv(dotenv_path)
logger.info("Archivo .env: %s (exists=%s)", dotenv_path, dotenv_path.exists())

# === DB_URL del entorno o, en su defecto, la de Settings (fallback SQLite en dev) ===
from core.config import settings  # noqa: E402

db_url = os.getenv("DB_URL") or settings.db_url
# Las migraciones corren con drivers síncronos
db_url = db_url.replace("+aiosqlite", "").replace("+asyncpg", "+psycopg")
try:
    parts = urlsplit(db_url)
    netloc = parts.netloc
    if "@" in netloc and ":" in netloc.split("@")[0]:
        user = netloc.split("@")[0].split(":")[0]
        host = netloc.split("@")[1]
        netloc = f"{user}:***@{host}"
    logger.info("DB_URL: %s", parts._replace(netloc=netloc).geturl())
except ValueError:
    logger.info("DB_URL: (formato no imprimible)")

# === Importar metadatos del proyecto ===
from db.base import Base  # noqa: E402
import db.models  # noqa: F401,E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        try:
            with context.begin_transaction():
                context.run_migrations()
            logger.info("Migraciones aplicadas con éxito")
        except Exception:  # pragma: no cover - logging
            logger.error("Error al ejecutar migraciones:\n%s", traceback.format_exc())
            raise


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
