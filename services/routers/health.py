# NG-HEADER: Nombre de archivo: health.py
# NG-HEADER: Ubicación: services/routers/health.py
# NG-HEADER: Descripción: Endpoints de healthcheck del secuenciador.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Endpoints de health y diagnóstico.

- Liveness básico (`/health`)
- Conectividad DB (`/health/db`)
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.session import get_db


router = APIRouter(prefix="/health", tags=["health"])
START_TIME = time.monotonic()


@router.get("")
async def health_root() -> Dict[str, Any]:
    """Liveness simple del backend (si responde, está vivo)."""
    return {
        "status": "ok",
        "env": settings.env,
        "sku_prefix": settings.sku_prefix,
        "uptime_s": round(time.monotonic() - START_TIME, 1),
    }


@router.get("/db")
async def health_db(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        return {"ok": False, "detail": str(e)[:200]}
    return {"ok": True}
