# NG-HEADER: Nombre de archivo: shopify.py
# NG-HEADER: Ubicación: services/integrations/shopify.py
# NG-HEADER: Descripción: Cliente Shopify por tienda para sondeo y escritura de SKUs.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Integración con la Admin API de Shopify.

Un ``ShopifyCatalog`` se abre por request (``async with``) y mantiene un único
``httpx.AsyncClient`` con la credencial de UNA tienda; nunca se comparte entre
tiendas ni se guarda a nivel de módulo.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import CatalogWriteError, ProbeError
from services.auth import resolve_shop_credential
from services.skus.catalog import Catalog

logger = logging.getLogger("skuseq.shopify")

# La búsqueda de Shopify tokeniza y no distingue mayúsculas; la igualdad exacta
# se verifica del lado nuestro recorriendo todas las páginas de coincidencias.
SKU_EXISTS_QUERY = """
  query skuExists($query: String!, $after: String) {
    productVariants(first: 50, query: $query, after: $after) {
      edges {
        node {
          id
          sku
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
"""

GID_VARIANT = "gid://shopify/ProductVariant/"
MAX_PROBE_PAGES = 20


def _numeric_id(value: str | int) -> str:
    s = str(value)
    if s.startswith(GID_VARIANT):
        return s[len(GID_VARIANT):]
    return s


class ShopifyCatalog(Catalog):
    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.shop = shop
        self._token = access_token
        self._api_version = api_version or settings.shopify_api_version
        self._timeout = timeout if timeout is not None else settings.shopify_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ShopifyCatalog":
        self._client = httpx.AsyncClient(
            base_url=f"https://{self.shop}/admin/api/{self._api_version}",
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "X-Shopify-Access-Token": self._token,
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "SkuSeq/1.0",
            },
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ShopifyCatalog debe usarse dentro de 'async with'")
        return self._client

    def _check_shop(self, shop: str) -> None:
        if shop != self.shop:
            raise ValueError(f"Cliente abierto para {self.shop}, no para {shop}")

    async def _graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = await self.client.post("/graphql.json", json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as exc:
            raise ProbeError(f"Shopify GraphQL inaccesible: {exc!r}") from exc
        if resp.status_code >= 400:
            raise ProbeError(f"Shopify GraphQL status={resp.status_code}: {resp.text[:300]}")
        data = resp.json()
        if data.get("errors"):
            raise ProbeError(f"Shopify GraphQL errors: {data['errors']}")
        return data.get("data") or {}

    async def sku_exists(self, shop: str, sku: str) -> bool:
        self._check_shop(shop)
        variables: Dict[str, Any] = {"query": f'sku:"{sku}"'}
        pages = 0
        while True:
            data = await self._graphql(SKU_EXISTS_QUERY, variables)
            try:
                conn = data["productVariants"]
                edges = conn["edges"]
            except (KeyError, TypeError) as exc:
                raise ProbeError(f"Respuesta inesperada de Shopify: {data!r}") from exc
            if any((e.get("node") or {}).get("sku") == sku for e in edges):
                return True
            pages += 1
            page_info = conn.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                return False
            if pages >= MAX_PROBE_PAGES:
                # Sin certeza: se trata como tomado (el número se descarta)
                logger.warning("Sondeo de %s en %s sin resolver tras %d páginas", sku, shop, pages)
                return True
            variables = {"query": f'sku:"{sku}"', "after": cursor}

    async def write_variant_sku(self, shop: str, variant_id: str, sku: str) -> None:
        self._check_shop(shop)
        vid = _numeric_id(variant_id)
        body: Dict[str, Any] = {"variant": {"id": int(vid) if vid.isdigit() else vid, "sku": sku}}
        if settings.sku_metafield_mirror:
            body["variant"]["metafields"] = [
                {
                    "namespace": "custom",
                    "key": "generated_sku",
                    "value": sku,
                    "type": "single_line_text_field",
                }
            ]
        try:
            resp = await self.client.put(f"/variants/{vid}.json", json=body)
        except httpx.HTTPError as exc:
            raise CatalogWriteError(str(variant_id), f"Shopify inaccesible: {exc!r}") from exc
        if resp.status_code >= 400:
            raise CatalogWriteError(str(variant_id), f"status={resp.status_code} {resp.text[:300]}")
        logger.info("SKU nativo %s actualizado en variante %s (%s)", sku, vid, shop)

    async def create_script_tag(self, src: str) -> Dict[str, Any]:
        """Registra el ScriptTag que autocompleta SKUs en el admin."""
        try:
            resp = await self.client.post("/script_tags.json", json={"script_tag": {"event": "onload", "src": src}})
        except httpx.HTTPError as exc:
            raise CatalogWriteError("script_tag", f"Shopify inaccesible: {exc!r}") from exc
        if resp.status_code >= 400:
            raise CatalogWriteError("script_tag", f"status={resp.status_code} {resp.text[:300]}")
        return resp.json().get("script_tag") or {}


@asynccontextmanager
async def open_catalog(session: AsyncSession, shop: str) -> AsyncIterator[ShopifyCatalog]:
    """Resuelve la credencial offline de ``shop`` y abre un cliente acotado al bloque."""
    token = await resolve_shop_credential(session, shop)
    async with ShopifyCatalog(shop, token) as catalog:
        yield catalog


def get_catalog_opener():
    """Dependencia FastAPI: fábrica ``(session, shop) -> async context manager``."""
    return open_catalog
