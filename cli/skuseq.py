# NG-HEADER: Nombre de archivo: skuseq.py
# NG-HEADER: Ubicación: cli/skuseq.py
# NG-HEADER: Descripción: CLI administrativa del secuenciador de SKU.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""CLI del secuenciador de SKU usando Typer."""
from __future__ import annotations

import asyncio
import subprocess
import sys

import typer

from core.errors import SkuError
from db.session import SessionLocal
from db.sku_counter import get_counter, set_counter
from db.sku_utils import build_sku
from services.auth import normalize_shop_domain, store_shop_session
from services.integrations.shopify import open_catalog
from services.skus.allocator import default_allocator

app = typer.Typer(help="Herramientas de línea de comandos del secuenciador de SKU")
counter_app = typer.Typer(help="Contador por tienda")
app.add_typer(counter_app, name="counter")
session_app = typer.Typer(help="Credenciales offline por tienda")
app.add_typer(session_app, name="session")


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except SkuError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)


@app.command()
def db_init() -> None:
    """Aplica las migraciones Alembic (alembic upgrade head)."""
    code = subprocess.call([sys.executable, "-m", "alembic", "upgrade", "head"])
    raise typer.Exit(code=code)


@counter_app.command("get")
def counter_get(shop: str) -> None:
    """Muestra el próximo número a probar."""

    async def _go() -> None:
        async with SessionLocal() as session:
            value = await get_counter(session, normalize_shop_domain(shop))
        if value is None:
            typer.echo("Sin contador configurado")
        else:
            typer.echo(f"{value} ({build_sku(value)})")

    _run(_go())


@counter_app.command("set")
def counter_set(shop: str, value: int) -> None:
    """Fija el número inicial. Puede ser menor al actual (los usados se saltean por sondeo)."""

    async def _go() -> None:
        async with SessionLocal() as session:
            await set_counter(session, normalize_shop_domain(shop), value)
        typer.echo(f"Contador fijado: próximos SKUs desde {build_sku(value)}")

    _run(_go())


@session_app.command("set")
def session_set(shop: str, token: str, scope: str = "write_products,read_products") -> None:
    """Guarda el token offline de una tienda."""

    async def _go() -> None:
        async with SessionLocal() as session:
            await store_shop_session(session, shop, token, scope)
        typer.echo("Sesión guardada")

    _run(_go())


@app.command()
def allocate(shop: str, count: int = typer.Argument(1, min=0)) -> None:
    """Reserva COUNT SKUs contra el catálogo real y avanza el contador."""

    async def _go() -> None:
        shop_norm = normalize_shop_domain(shop)
        async with SessionLocal() as session:
            async with open_catalog(session, shop_norm) as catalog:
                numbers = await default_allocator.allocate(session, shop_norm, count, catalog)
        for n in numbers:
            typer.echo(build_sku(n, default_allocator.prefix))

    _run(_go())


if __name__ == "__main__":  # pragma: no cover
    app()
