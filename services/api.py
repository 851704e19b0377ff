# NG-HEADER: Nombre de archivo: api.py
# NG-HEADER: Ubicación: services/api.py
# NG-HEADER: Descripción: Aplicación FastAPI del secuenciador de SKU (webhooks + admin).
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Aplicación FastAPI principal."""

import logging
from logging.handlers import RotatingFileHandler
import os
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi import HTTPException as FastHTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from core.config import settings
from core.errors import CatalogWriteError, ConfigurationError, InvalidInput, ProbeError, SkuError
from .routers import health, skus, webhooks

raw_level = os.getenv("LOG_LEVEL", settings.log_level) or "INFO"
level_name = raw_level.strip().upper()
if level_name not in logging._nameToLevel:
    level_name = "INFO"
logger = logging.getLogger("skuseq")
logger.setLevel(level_name)
LOG_DIR = Path(__file__).resolve().parents[1] / "logs"
try:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
except OSError:
    pass
fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(fmt)

file_handler = None
log_path = LOG_DIR / "backend.log"
try:
    # delay=True evita abrir el archivo hasta el primer log
    file_handler = RotatingFileHandler(
        str(log_path), maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8", delay=True
    )
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)
except OSError:
    # Sin permisos: continuar solo con consola
    file_handler = None

logger.addHandler(stream_handler)

handlers = [h for h in (file_handler, stream_handler) if h is not None]
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).handlers = handlers
    logging.getLogger(_name).setLevel(level_name)

app = FastAPI(title="SkuSeq", redirect_slashes=False)

try:
    from db.session import engine as _eng
    logger.info("DB effective URL: %s", _eng.url.render_as_string(hide_password=True))
except Exception:
    logger.debug("No se pudo resolver la URL efectiva de la DB", exc_info=True)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Registra cada solicitud y captura excepciones con un correlation-id."""
    start = time.perf_counter()
    corr = request.headers.get("x-correlation-id") or request.headers.get("x-request-id")
    if not corr:
        corr = f"req-{int(time.time() * 1000):x}-{os.getpid():x}"
    try:
        resp = await call_next(request)
    except (FastHTTPException, StarletteHTTPException):
        raise
    except Exception:
        dur = (time.perf_counter() - start) * 1000
        logger.exception("EXC %s %s cid=%s (%.2fms)", request.method, request.url.path, corr, dur)
        return JSONResponse({"detail": "Error interno", "correlation_id": corr}, status_code=500)
    dur = (time.perf_counter() - start) * 1000
    resp.headers["X-Correlation-Id"] = corr
    logger.info("%s %s -> %s cid=%s (%.2fms)", request.method, request.url.path, resp.status_code, corr, dur)
    return resp


# --- Exception Handlers Específicos ---
_STATUS_BY_ERROR: list[tuple[type[SkuError], int]] = [
    (InvalidInput, 400),
    (ConfigurationError, 503),
    (ProbeError, 503),
    (CatalogWriteError, 502),
]


@app.exception_handler(SkuError)
async def sku_error_handler(request: Request, exc: SkuError):  # type: ignore[override]
    """Mapea la taxonomía de errores del asignador a códigos HTTP."""
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    log = logger.warning if status < 500 else logger.error
    log("%s en %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(
        {"success": False, "code": type(exc).__name__, "message": str(exc), "retryable": exc.retryable},
        status_code=status,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
    """Loguea los campos inválidos y devuelve el formato 422 por defecto."""
    flat = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", []))
        flat.append(f"{loc}: {e.get('msg')}")
    logger.warning("422 en %s %s -> %s", request.method, request.url.path, "; ".join(flat))
    return JSONResponse({"detail": jsonable_encoder(exc.errors())}, status_code=422)


app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(skus.router)
