#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: sku_utils.py
# NG-HEADER: Ubicación: db/sku_utils.py
# NG-HEADER: Descripción: Utilidades para construir y reconocer SKUs con prefijo.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Helpers relacionados al SKU secuencial.

Formato: <PREFIJO><N>

- PREFIJO: constante por despliegue (``SKU_PREFIX``, por defecto ``LA``).
- N: entero decimal no negativo, sin relleno ni separadores.

Ejemplos válidos (prefijo ``LA``):
  LA0
  LA1000
  LA987654321

Casos NO válidos:
  la1000   (el prefijo distingue mayúsculas)
  LA-1000  (separador)
  LA01000  (cero a la izquierda: no reconstruye el mismo texto)
  LA       (sin número)
"""
from __future__ import annotations

import re
from functools import lru_cache

from core.config import settings


@lru_cache(maxsize=16)
def _sku_regex(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}(0|[1-9][0-9]*)$")


def build_sku(number: int, prefix: str | None = None) -> str:
    """Construye el SKU ``<prefijo><número>``.

    No valida unicidad, eso lo resuelve el asignador contra el catálogo.
    """
    if number < 0:
        raise ValueError(f"número de SKU negativo: {number}")
    return f"{prefix if prefix is not None else settings.sku_prefix}{number}"


def parse_sku(value: str | None, prefix: str | None = None) -> int | None:
    """Devuelve el número de un SKU con prefijo válido, o None.

    El match es exacto y sensible a mayúsculas; espacios alrededor se ignoran.
    """
    if not value:
        return None
    m = _sku_regex(prefix if prefix is not None else settings.sku_prefix).fullmatch(value.strip())
    if not m:
        return None
    return int(m.group(1))


def is_prefixed_sku(value: str | None, prefix: str | None = None) -> bool:
    return parse_sku(value, prefix) is not None
