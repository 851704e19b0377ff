# NG-HEADER: Nombre de archivo: webhooks.py
# NG-HEADER: Ubicación: services/routers/webhooks.py
# NG-HEADER: Descripción: Webhooks de Shopify (products/create, app/uninstalled).
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Webhooks entrantes de Shopify.

Contrato de respuesta para ``products/create``:
- 200 ``skipped``: evento ya procesado (evita reintentos de Shopify).
- 200 ``ok``: SKUs asignados; ``failures`` lista variantes cuya escritura falló.
- 400: payload sin variantes.
- 401: firma HMAC inválida.
- 503: dependencia caída o tienda sin configurar (Shopify reintenta).
"""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from core.config import settings
from core.errors import ConfigurationError, ProbeError
from db.models import ShopSession
from db.session import get_session
from db.sku_ledger import find_allocations
from services.auth import normalize_shop_domain, verify_webhook_hmac
from services.integrations.shopify import get_catalog_opener
from services.skus.allocator import SkuAllocator, get_allocator
from services.skus.intake import VariantIn, handle_product_created

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger("skuseq.webhooks")


async def _verified_payload(request: Request) -> tuple[str, dict] | JSONResponse:
    raw = await request.body()
    if settings.webhook_verify_hmac and not verify_webhook_hmac(
        raw, request.headers.get("X-Shopify-Hmac-Sha256")
    ):
        logger.warning("Webhook %s con HMAC inválido", request.url.path)
        return JSONResponse({"status": "error", "message": "invalid hmac"}, status_code=401)
    shop = normalize_shop_domain(request.headers.get("X-Shopify-Shop-Domain"))
    if not shop:
        return JSONResponse({"status": "error", "message": "missing shop domain"}, status_code=400)
    try:
        payload = json.loads(raw or b"{}")
    except ValueError:
        return JSONResponse({"status": "error", "message": "invalid json"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"status": "error", "message": "invalid payload"}, status_code=400)
    return shop, payload


@router.post("/products-create")
async def products_create(
    request: Request,
    session: AsyncSession = Depends(get_session),
    open_catalog=Depends(get_catalog_opener),
    allocator: SkuAllocator = Depends(get_allocator),
):
    parsed = await _verified_payload(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    shop, product = parsed
    product_id = str(product.get("id") or "")
    if not product_id:
        return JSONResponse({"status": "error", "message": "missing product id"}, status_code=400)
    logger.info("Webhook PRODUCTS_CREATE para %s, producto %s", shop, product_id)

    # Atajo sin credencial ni red para re-entregas
    if await find_allocations(session, shop, product_id):
        logger.info("SKUs ya generados para el producto %s; se omite la re-entrega", product_id)
        return {"status": "skipped", "message": "SKUs already exist for this product."}

    variants = [
        VariantIn(id=str(v.get("id")), sku=v.get("sku") or None)
        for v in (product.get("variants") or [])
        if isinstance(v, dict) and v.get("id") is not None
    ]
    if not variants:
        logger.error("PRODUCTS_CREATE %s/%s sin variantes", shop, product_id)
        return JSONResponse({"status": "error", "message": "No variants found"}, status_code=400)
    try:
        async with open_catalog(session, shop) as catalog:
            outcome = await handle_product_created(
                session, shop, product_id, variants, catalog=catalog, allocator=allocator
            )
    except (ProbeError, ConfigurationError) as exc:
        logger.error("PRODUCTS_CREATE %s/%s reintentable: %s", shop, product_id, exc)
        return JSONResponse({"status": "error", "message": str(exc)}, status_code=503)

    if outcome.status == "failed":
        return JSONResponse({"status": "error", "message": "No variants found"}, status_code=400)
    if outcome.status == "skipped":
        return {"status": "skipped", "message": "SKUs already exist for this product."}
    return {"status": "ok", "assigned": outcome.assigned, "failures": outcome.failures}


@router.post("/app-uninstalled")
async def app_uninstalled(request: Request, session: AsyncSession = Depends(get_session)):
    """Elimina la credencial offline. El contador y el ledger se conservan."""
    parsed = await _verified_payload(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    shop, _ = parsed
    await session.execute(delete(ShopSession).where(ShopSession.shop == shop))
    await session.commit()
    logger.info("App desinstalada en %s; sesión eliminada", shop)
    return {"status": "ok"}
