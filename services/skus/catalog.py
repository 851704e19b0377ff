# NG-HEADER: Nombre de archivo: catalog.py
# NG-HEADER: Ubicación: services/skus/catalog.py
# NG-HEADER: Descripción: Interfaces del catálogo externo usadas por el asignador de SKU.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Interfaz común del catálogo externo (sondeo y escritura de SKU)."""
from __future__ import annotations

from abc import ABC, abstractmethod


class CatalogProbe(ABC):
    """Responde si alguna variante de la tienda ya lleva exactamente ``sku``."""

    @abstractmethod
    async def sku_exists(self, shop: str, sku: str) -> bool:  # pragma: no cover - interfaz
        """Match exacto y sensible a mayúsculas. Errores -> ``ProbeError``."""


class CatalogWriter(ABC):
    @abstractmethod
    async def write_variant_sku(self, shop: str, variant_id: str, sku: str) -> None:  # pragma: no cover - interfaz
        """Escribe el campo SKU de la variante. Errores -> ``CatalogWriteError``."""


class Catalog(CatalogProbe, CatalogWriter):
    """Catálogo completo: lo que necesita el intake de eventos."""
