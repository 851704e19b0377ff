# NG-HEADER: Nombre de archivo: skus.py
# NG-HEADER: Ubicación: services/routers/skus.py
# NG-HEADER: Descripción: Endpoints administrativos del contador y reserva de SKUs.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Endpoints administrativos de SKUs.

- ``GET /skus/counter``: valor actual del contador de la tienda.
- ``PUT /skus/counter``: fija el número inicial (upsert; puede bajar).
- ``POST /skus/next``: reserva N SKUs (autocompletado del formulario de producto).
- ``POST /skus/resync``: reintenta escrituras pendientes en el catálogo.
- ``POST /skus/scripttag``: registra el script de autocompletado en la tienda.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from db.sku_counter import get_counter, set_counter
from db.sku_utils import build_sku
from services.auth import AdminContext, require_admin_shop
from services.integrations.shopify import get_catalog_opener
from services.skus.allocator import SkuAllocator, get_allocator
from services.skus.intake import resync_pending

router = APIRouter(prefix="/skus", tags=["skus"])
logger = logging.getLogger("skuseq.skus")

MAX_RESERVE = 250


class CounterIn(BaseModel):
    value: int = Field(..., ge=0, description="Próximo número a probar")


class ReserveIn(BaseModel):
    count: int = Field(1, ge=0, le=MAX_RESERVE)


class ScriptTagIn(BaseModel):
    src: str = Field(..., min_length=8)


@router.get("/counter")
async def read_counter(
    ctx: AdminContext = Depends(require_admin_shop),
    session: AsyncSession = Depends(get_session),
    allocator: SkuAllocator = Depends(get_allocator),
) -> dict:
    current = await get_counter(session, ctx.shop)
    return {"shop": ctx.shop, "current_sku": current, "prefix": allocator.prefix}


@router.put("/counter")
async def write_counter(
    req: CounterIn,
    ctx: AdminContext = Depends(require_admin_shop),
    session: AsyncSession = Depends(get_session),
    allocator: SkuAllocator = Depends(get_allocator),
) -> dict:
    # Mismo lock que el asignador: no pisar una asignación en curso
    async with allocator.lock_for(ctx.shop):
        value = await set_counter(session, ctx.shop, req.value)
    logger.info("Contador de %s fijado en %s", ctx.shop, value)
    return {"success": True, "current_sku": value, "next_sku": build_sku(value, allocator.prefix)}


@router.post("/next")
async def reserve_skus(
    req: ReserveIn,
    ctx: AdminContext = Depends(require_admin_shop),
    session: AsyncSession = Depends(get_session),
    open_catalog=Depends(get_catalog_opener),
    allocator: SkuAllocator = Depends(get_allocator),
) -> dict:
    async with open_catalog(session, ctx.shop) as catalog:
        numbers = await allocator.allocate(session, ctx.shop, req.count, catalog)
    return {"success": True, "skus": [build_sku(n, allocator.prefix) for n in numbers]}


@router.post("/resync")
async def resync(
    ctx: AdminContext = Depends(require_admin_shop),
    session: AsyncSession = Depends(get_session),
    open_catalog=Depends(get_catalog_opener),
    allocator: SkuAllocator = Depends(get_allocator),
) -> dict:
    async with open_catalog(session, ctx.shop) as catalog:
        outcome = await resync_pending(session, ctx.shop, catalog=catalog, prefix=allocator.prefix)
    return {"success": not outcome.failures, "synced": outcome.assigned, "failures": outcome.failures}


@router.post("/scripttag")
async def install_script_tag(
    req: ScriptTagIn,
    ctx: AdminContext = Depends(require_admin_shop),
    session: AsyncSession = Depends(get_session),
    open_catalog=Depends(get_catalog_opener),
) -> dict:
    async with open_catalog(session, ctx.shop) as catalog:
        tag = await catalog.create_script_tag(req.src)
    logger.info("ScriptTag registrado en %s: %s", ctx.shop, req.src)
    return {"success": True, "script_tag": tag}
