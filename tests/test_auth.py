#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: test_auth.py
# NG-HEADER: Ubicación: tests/test_auth.py
# NG-HEADER: Descripción: Pruebas de firma de webhooks y normalización de dominios.
# NG-HEADER: Lineamientos: Ver AGENTS.md
import pytest

from core.errors import ConfigurationError, InvalidInput
from services.auth import (
    normalize_shop_domain,
    resolve_shop_credential,
    store_shop_session,
    verify_webhook_hmac,
)
from conftest import SHOP, sign


@pytest.mark.parametrize(
    "raw",
    ["demo-shop", "https://demo-shop.myshopify.com/", "  Demo-Shop.myshopify.com ", "http://demo-shop.myshopify.com"],
)
def test_normalize_shop_domain(raw):
    assert normalize_shop_domain(raw) == SHOP


def test_normalize_shop_domain_empty():
    assert normalize_shop_domain(None) == ""
    assert normalize_shop_domain("  ") == ""


def test_verify_webhook_hmac():
    body = b'{"id": 1}'
    assert verify_webhook_hmac(body, sign(body))
    assert not verify_webhook_hmac(body + b" ", sign(body))
    assert not verify_webhook_hmac(body, sign(body, "otro-secreto"))
    assert not verify_webhook_hmac(body, None)
    assert not verify_webhook_hmac(body, sign(body), secret="")


@pytest.mark.asyncio
async def test_store_and_resolve_shop_session(db_session):
    with pytest.raises(ConfigurationError):
        await resolve_shop_credential(db_session, SHOP)
    await store_shop_session(db_session, "demo-shop", "shpat_1", "write_products")
    assert await resolve_shop_credential(db_session, SHOP) == "shpat_1"
    # Reinstalación: se reemplaza el token
    await store_shop_session(db_session, SHOP, "shpat_2")
    assert await resolve_shop_credential(db_session, SHOP) == "shpat_2"


@pytest.mark.asyncio
async def test_store_shop_session_requires_token(db_session):
    with pytest.raises(InvalidInput):
        await store_shop_session(db_session, SHOP, "")
