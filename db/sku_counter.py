#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: sku_counter.py
# NG-HEADER: Ubicación: db/sku_counter.py
# NG-HEADER: Descripción: Contador transaccional por tienda (store_counters).
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Acceso transaccional a ``store_counters``.

Uso:
    current = await lock_counter(session, shop)   # dentro de la transacción del asignador
    await advance_counter(session, shop, nuevo)   # mismo unit of work

Reglas:
 - Una fila por tienda: ``shop`` (PK), ``next_candidate`` (próximo número a probar).
 - El asignador nunca crea la fila: una tienda sin contador es un error de configuración.
 - ``set_counter`` es un upsert administrativo; puede bajar el valor (se loguea).
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConfigurationError, InvalidInput
from .models import ShopCounter

logger = logging.getLogger("skuseq.counter")


async def get_counter(session: AsyncSession, shop: str) -> int | None:
    """Devuelve ``next_candidate`` de la tienda o None si no fue configurada."""
    row = await session.scalar(select(ShopCounter.next_candidate).where(ShopCounter.shop == shop))
    return int(row) if row is not None else None


async def lock_counter(session: AsyncSession, shop: str) -> int:
    """Lee y bloquea (SELECT FOR UPDATE) la fila de contador de ``shop``.

    En SQLite la cláusula FOR UPDATE se omite al compilar; la serialización
    queda a cargo del lock por tienda del asignador y del lock de escritura
    de la base.
    """
    current = await session.scalar(
        select(ShopCounter.next_candidate).where(ShopCounter.shop == shop).with_for_update()
    )
    if current is None:
        raise ConfigurationError(f"Contador de SKU no inicializado para la tienda {shop}")
    return int(current)


async def advance_counter(session: AsyncSession, shop: str, next_candidate: int) -> None:
    """Mueve el cursor hacia adelante; no hace commit."""
    counter = await session.get(ShopCounter, shop, populate_existing=True)
    if counter is None:
        raise ConfigurationError(f"Contador de SKU no inicializado para la tienda {shop}")
    if next_candidate < counter.next_candidate:
        raise InvalidInput(
            f"El asignador no puede retroceder el contador ({counter.next_candidate} -> {next_candidate})"
        )
    counter.next_candidate = next_candidate


async def set_counter(session: AsyncSession, shop: str, value: int) -> int:
    """Upsert administrativo del contador. Idempotente; hace commit."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"Número inicial inválido: {value!r}")
    counter = await session.get(ShopCounter, shop, with_for_update=True, populate_existing=True)
    if counter is None:
        session.add(ShopCounter(shop=shop, next_candidate=value))
        logger.info("Contador creado para %s en %s", shop, value)
    else:
        if value < counter.next_candidate:
            logger.warning(
                "Contador de %s reducido %s -> %s: números ya usados se descartarán por sondeo",
                shop,
                counter.next_candidate,
                value,
            )
        counter.next_candidate = value
    await session.commit()
    return value
