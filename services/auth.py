# NG-HEADER: Nombre de archivo: auth.py
# NG-HEADER: Ubicación: services/auth.py
# NG-HEADER: Descripción: Credenciales por tienda, token administrativo y firma de webhooks.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Utilidades de autenticación y manejo de sesiones por tienda."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import ConfigurationError, InvalidInput
from db.models import ShopSession

logger = logging.getLogger("skuseq.auth")


def normalize_shop_domain(value: str | None) -> str:
    """``mi-tienda`` / ``https://mi-tienda.myshopify.com/`` -> ``mi-tienda.myshopify.com``."""
    v = (value or "").strip().lower()
    for scheme in ("https://", "http://"):
        if v.startswith(scheme):
            v = v[len(scheme):]
    v = v.strip("/")
    if v and "." not in v:
        v = f"{v}.myshopify.com"
    return v


def verify_webhook_hmac(raw_body: bytes, header_hmac: str | None, secret: str | None = None) -> bool:
    """Valida ``X-Shopify-Hmac-Sha256`` (base64 de HMAC-SHA256 del body crudo)."""
    key = secret if secret is not None else settings.shopify_api_secret
    if not key or not header_hmac:
        return False
    digest = hmac.new(key.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    # Comparación en tiempo constante
    return secrets.compare_digest(expected, header_hmac.strip())


@dataclass
class AdminContext:
    """Tienda resuelta para un request administrativo."""

    shop: str


async def require_admin_shop(request: Request) -> AdminContext:
    """Dependencia: exige ``X-Admin-Token`` válido y ``X-Shopify-Shop-Domain``."""
    token = request.headers.get("X-Admin-Token") or ""
    expected = settings.admin_api_token
    if not expected or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Token administrativo inválido")
    shop = normalize_shop_domain(request.headers.get("X-Shopify-Shop-Domain"))
    if not shop:
        raise HTTPException(status_code=400, detail="Falta X-Shopify-Shop-Domain")
    return AdminContext(shop=shop)


async def resolve_shop_credential(session: AsyncSession, shop: str) -> str:
    """Devuelve el token offline de la tienda o ``ConfigurationError``."""
    res = await session.execute(
        select(ShopSession).where(ShopSession.shop == shop, ShopSession.is_online.is_(False))
    )
    sess: ShopSession | None = res.scalar_one_or_none()
    if not sess or not sess.access_token:
        raise ConfigurationError(f"No hay sesión offline válida para la tienda {shop}")
    logger.debug("Token de acceso para %s: %s...", shop, sess.access_token[:6])
    return sess.access_token


async def store_shop_session(
    session: AsyncSession, shop: str, access_token: str, scope: str | None = None
) -> ShopSession:
    """Upsert de la sesión offline (p. ej. tras instalar la app)."""
    shop = normalize_shop_domain(shop)
    if not shop or not access_token:
        raise InvalidInput("shop y access_token son obligatorios")
    sess = await session.get(ShopSession, shop)
    if sess is None:
        sess = ShopSession(shop=shop, access_token=access_token, scope=scope, is_online=False)
        session.add(sess)
    else:
        sess.access_token = access_token
        sess.scope = scope
        sess.is_online = False
    await session.commit()
    logger.info("Sesión offline guardada para %s (token %s...)", shop, access_token[:6])
    return sess
