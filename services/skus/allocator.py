# NG-HEADER: Nombre de archivo: allocator.py
# NG-HEADER: Ubicación: services/skus/allocator.py
# NG-HEADER: Descripción: Asignación de lotes de números de SKU libres de colisión por tienda.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Asignador de SKUs secuenciales.

Uso:
    numbers = await allocator.allocate(session, shop, count, probe)

Reglas:
 - Se parte de ``store_counters.next_candidate`` de la tienda (debe existir).
 - Cada candidato ``<prefijo><n>`` se descarta si ya figura en el ledger de la
   tienda o si el catálogo lo reporta en uso.
 - ``n`` avanza tras cada intento, aceptado o no: un número probado nunca se
   vuelve a probar.
 - El nuevo cursor (uno más que el último probado) se persiste en la misma
   transacción que tomó el lock de la fila; si el sondeo falla se hace
   rollback y el contador queda como estaba.
 - Un lock asíncrono por tienda serializa las asignaciones del proceso; el
   ``FOR UPDATE`` sobre la fila serializa entre procesos (PostgreSQL).
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import InvalidInput
from db.sku_counter import advance_counter, lock_counter
from db.sku_ledger import sku_number_taken
from db.sku_utils import build_sku
from .catalog import CatalogProbe

logger = logging.getLogger("skuseq.allocator")


class SkuAllocator:
    def __init__(self, prefix: str | None = None) -> None:
        self.prefix = prefix or settings.sku_prefix
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, shop: str) -> asyncio.Lock:
        return self._locks[shop]

    async def allocate(
        self,
        session: AsyncSession,
        shop: str,
        count: int,
        probe: CatalogProbe,
    ) -> list[int]:
        """Devuelve ``count`` números distintos, ascendentes y libres en el catálogo.

        Confirma (commit) el avance del contador antes de devolver. Cualquier
        excepción durante el sondeo revierte la transacción y se propaga.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidInput(f"Cantidad de SKUs inválida: {count!r}")
        if count == 0:
            return []

        # Sin transacción abierta mientras se espera el lock
        if session.in_transaction():
            await session.commit()
        async with self.lock_for(shop):
            try:
                start = await lock_counter(session, shop)
                accepted: list[int] = []
                n = start
                rejected = 0
                while len(accepted) < count:
                    candidate = build_sku(n, self.prefix)
                    if await sku_number_taken(session, shop, n):
                        rejected += 1
                        logger.info("SKU %s ya registrado en el ledger de %s; se omite", candidate, shop)
                    elif await probe.sku_exists(shop, candidate):
                        rejected += 1
                        logger.info("SKU %s ya está en uso en %s; se omite", candidate, shop)
                    else:
                        logger.debug("SKU %s disponible en %s", candidate, shop)
                        accepted.append(n)
                    n += 1
                await advance_counter(session, shop, n)
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

        logger.info(
            "Asignados %d SKUs para %s (probados=%d, descartados=%d, contador=%d): %s",
            count,
            shop,
            n - start,
            rejected,
            n,
            ", ".join(build_sku(x, self.prefix) for x in accepted),
        )
        return accepted


# Instancia compartida por la API y la CLI (los locks son por tienda)
default_allocator = SkuAllocator()


def get_allocator() -> SkuAllocator:
    return default_allocator
