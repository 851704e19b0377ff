#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: sku_ledger.py
# NG-HEADER: Ubicación: db/sku_ledger.py
# NG-HEADER: Descripción: Registro append-only de SKUs asignados por variante (product_skus).
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Ledger de asignaciones ``(shop, product_id, variant_id) -> sku_number``.

Se usa como clave de idempotencia: si un producto ya tiene filas, el evento
se considera procesado. La unicidad ``(shop, variant_id)`` resuelve la carrera
entre dos entregas simultáneas del mismo webhook.
"""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ProductSku


async def find_allocations(session: AsyncSession, shop: str, product_id: str) -> list[ProductSku]:
    rows = await session.scalars(
        select(ProductSku)
        .where(ProductSku.shop == shop, ProductSku.product_id == str(product_id))
        .order_by(ProductSku.id.asc())
    )
    return list(rows)


async def insert_allocation(
    session: AsyncSession,
    *,
    shop: str,
    product_id: str,
    variant_id: str,
    sku_number: int,
    source: str = "allocated",
) -> ProductSku | None:
    """Inserta una fila dentro de un SAVEPOINT.

    Devuelve None si la variante ya estaba registrada (conflicto de unicidad);
    el resto de la transacción queda intacto. No hace commit.
    """
    row = ProductSku(
        shop=shop,
        product_id=str(product_id),
        variant_id=str(variant_id),
        sku_number=sku_number,
        source=source,
        catalog_synced=False,
    )
    try:
        async with session.begin_nested():
            session.add(row)
    except IntegrityError:
        return None
    return row


async def mark_synced(session: AsyncSession, row_ids: list[int]) -> None:
    if not row_ids:
        return
    await session.execute(
        update(ProductSku).where(ProductSku.id.in_(row_ids)).values(catalog_synced=True)
    )
    await session.commit()


async def pending_sync(session: AsyncSession, shop: str, limit: int = 250) -> list[ProductSku]:
    """Filas registradas cuya escritura en el catálogo falló o no llegó a ocurrir."""
    rows = await session.scalars(
        select(ProductSku)
        .where(ProductSku.shop == shop, ProductSku.catalog_synced.is_(False))
        .order_by(ProductSku.id.asc())
        .limit(limit)
    )
    return list(rows)


async def sku_number_taken(
    session: AsyncSession, shop: str, sku_number: int, *, exclude_variant: str | None = None
) -> bool:
    """True si otra variante de la tienda ya tiene registrado ``sku_number``.

    El ledger puede adelantarse al catálogo (escrituras fallidas o pendientes),
    así que cuenta como evidencia de "SKU tomado" aunque el sondeo diga libre.
    """
    stmt = select(ProductSku.id).where(ProductSku.shop == shop, ProductSku.sku_number == sku_number)
    if exclude_variant is not None:
        stmt = stmt.where(ProductSku.variant_id != str(exclude_variant))
    return (await session.scalar(stmt.limit(1))) is not None
