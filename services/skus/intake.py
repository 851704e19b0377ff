# NG-HEADER: Nombre de archivo: intake.py
# NG-HEADER: Ubicación: services/skus/intake.py
# NG-HEADER: Descripción: Procesamiento idempotente del evento "producto creado".
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Asignación de SKUs a las variantes de un producto recién creado.

Flujo:
  1. Si el ledger ya tiene filas para (shop, product_id) -> ``skipped``.
  2. Sin variantes -> ``failed`` (``no_variants``).
  3. Variantes que ya traen ``<prefijo><n>`` se registran tal cual; el resto
     pide números al asignador.
  4. Se registran todas las filas (SAVEPOINT por fila) y se confirma ANTES de
     escribir en el catálogo.
  5. La escritura en el catálogo es best-effort por variante: un fallo se
     loguea y se reporta sin abortar las demás.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import CatalogWriteError
from db.models import ProductSku
from db.sku_ledger import find_allocations, insert_allocation, mark_synced, pending_sync, sku_number_taken
from db.sku_utils import build_sku, parse_sku
from .allocator import SkuAllocator, default_allocator
from .catalog import Catalog, CatalogWriter

logger = logging.getLogger("skuseq.intake")

Status = Literal["skipped", "assigned", "failed"]


@dataclass
class VariantIn:
    id: str
    sku: str | None = None


@dataclass
class IntakeOutcome:
    status: Status
    assigned: dict[str, str] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    reason: str | None = None

    def as_dict(self) -> dict:
        out: dict = {"status": self.status}
        if self.status == "assigned":
            out["assigned"] = self.assigned
            out["failures"] = self.failures
        if self.reason:
            out["reason"] = self.reason
        return out


def _coerce_variants(variants: Iterable[VariantIn | dict]) -> list[VariantIn]:
    out: list[VariantIn] = []
    for v in variants:
        if isinstance(v, VariantIn):
            out.append(v)
        else:
            out.append(VariantIn(id=str(v["id"]), sku=v.get("sku") or None))
    return out


async def handle_product_created(
    session: AsyncSession,
    shop: str,
    product_id: str | int,
    variants: Iterable[VariantIn | dict],
    *,
    catalog: Catalog,
    allocator: SkuAllocator | None = None,
) -> IntakeOutcome:
    allocator = allocator or default_allocator
    product_id = str(product_id)
    prefix = allocator.prefix

    if await find_allocations(session, shop, product_id):
        logger.info("SKUs ya generados para el producto %s de %s; entrega duplicada", product_id, shop)
        return IntakeOutcome("skipped")

    items = _coerce_variants(variants)
    if not items:
        logger.error("Producto %s de %s sin variantes en el payload", product_id, shop)
        return IntakeOutcome("failed", reason="no_variants")

    preassigned: list[tuple[VariantIn, int]] = []
    pending: list[VariantIn] = []
    for v in items:
        number = parse_sku(v.sku, prefix)
        if number is None:
            pending.append(v)
        else:
            preassigned.append((v, number))

    numbers = await allocator.allocate(session, shop, len(pending), catalog)
    pairs: list[tuple[VariantIn, int, str]] = [(v, n, "preassigned") for v, n in preassigned]
    pairs += [(v, n, "allocated") for v, n in zip(pending, numbers)]

    # El ledger se confirma antes de escribir en el catálogo
    recorded: list[tuple[ProductSku, str]] = []
    for v, n, source in pairs:
        row = await insert_allocation(
            session, shop=shop, product_id=product_id, variant_id=v.id, sku_number=n, source=source
        )
        if row is None:
            logger.info("Variante %s de %s ya registrada por otra entrega; se omite", v.id, shop)
            continue
        recorded.append((row, build_sku(n, prefix)))
    await session.commit()

    if not recorded:
        return IntakeOutcome("skipped")

    outcome = IntakeOutcome("assigned")
    synced = await _push_skus(shop, recorded, catalog, outcome)
    await mark_synced(session, synced)
    logger.info(
        "Producto %s de %s: %d SKUs asignados, %d fallos de escritura",
        product_id,
        shop,
        len(outcome.assigned),
        len(outcome.failures),
    )
    return outcome


async def _push_skus(
    shop: str,
    recorded: list[tuple[ProductSku, str]],
    writer: CatalogWriter,
    outcome: IntakeOutcome,
) -> list[int]:
    synced: list[int] = []
    for row, sku in recorded:
        try:
            await writer.write_variant_sku(shop, row.variant_id, sku)
        except CatalogWriteError as exc:
            logger.error("No se pudo escribir SKU %s en variante %s: %s", sku, row.variant_id, exc)
            outcome.failures[row.variant_id] = str(exc)
            continue
        outcome.assigned[row.variant_id] = sku
        synced.append(row.id)
    return synced


async def resync_pending(
    session: AsyncSession,
    shop: str,
    *,
    catalog: CatalogWriter,
    prefix: str | None = None,
) -> IntakeOutcome:
    """Reintenta la escritura de filas del ledger con ``catalog_synced = False``."""
    rows = await pending_sync(session, shop)
    outcome = IntakeOutcome("assigned")
    if not rows:
        return outcome
    recorded: list[tuple[ProductSku, str]] = []
    for row in rows:
        sku = build_sku(row.sku_number, prefix)
        if await sku_number_taken(session, shop, row.sku_number, exclude_variant=row.variant_id):
            logger.error("SKU %s de la variante %s ya registrado para otra variante; no se reescribe", sku, row.variant_id)
            outcome.failures[row.variant_id] = f"SKU {sku} registrado para otra variante"
            continue
        recorded.append((row, sku))
    synced = await _push_skus(shop, recorded, catalog, outcome)
    await mark_synced(session, synced)
    logger.info("Resync %s: %d ok, %d pendientes", shop, len(synced), len(outcome.failures))
    return outcome
