# NG-HEADER: Nombre de archivo: errors.py
# NG-HEADER: Ubicación: core/errors.py
# NG-HEADER: Descripción: Taxonomía de errores de asignación de SKU.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Errores del motor de asignación de SKU.

- ``ConfigurationError``: la tienda no tiene contador o credencial; nada se mutó.
- ``ProbeError``: falló la consulta de existencia al catálogo; reintentable,
  sin avance de contador ni registros.
- ``CatalogWriteError``: falló la escritura del SKU de una variante; se aísla
  por variante.
- ``InvalidInput``: entrada rechazada antes de cualquier efecto.
"""
from __future__ import annotations


class SkuError(Exception):
    """Error base del secuenciador."""

    retryable: bool = False


class ConfigurationError(SkuError):
    """Contador o sesión de la tienda sin aprovisionar."""


class ProbeError(SkuError):
    """Error al consultar el catálogo externo por un SKU."""

    retryable = True


class CatalogWriteError(SkuError):
    """Error al escribir el SKU de una variante en el catálogo externo."""

    retryable = True

    def __init__(self, variant_id: str, message: str) -> None:
        super().__init__(f"variante {variant_id}: {message}")
        self.variant_id = variant_id


class InvalidInput(SkuError):
    """Entrada inválida (conteos negativos, valores no numéricos, sin variantes)."""
