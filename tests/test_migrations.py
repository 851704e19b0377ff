#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: test_migrations.py
# NG-HEADER: Ubicación: tests/test_migrations.py
# NG-HEADER: Descripción: Pruebas de las migraciones Alembic (upgrade head sobre SQLite).
# NG-HEADER: Lineamientos: Ver AGENTS.md
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from core.config import settings

ROOT = Path(__file__).resolve().parents[1]


def _alembic_config() -> Config:
    # Sin alembic.ini: no se reconfigura el logging de la suite
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "db" / "migrations"))
    return cfg


def test_upgrade_without_db_url_uses_settings_fallback(tmp_path, monkeypatch):
    db_file = tmp_path / "dev.db"
    monkeypatch.delenv("DB_URL", raising=False)
    monkeypatch.setattr(settings, "db_url", f"sqlite+aiosqlite:///{db_file}")

    command.upgrade(_alembic_config(), "head")

    eng = create_engine(f"sqlite:///{db_file}")
    try:
        insp = inspect(eng)
        tables = set(insp.get_table_names())
        indexes = {ix["name"] for ix in insp.get_indexes("product_skus")}
    finally:
        eng.dispose()
    assert {"store_counters", "product_skus", "shop_sessions", "alembic_version"} <= tables
    assert {"ix_product_skus_shop_product", "ix_product_skus_shop_number"} <= indexes
