# NG-HEADER: Nombre de archivo: config.py
# NG-HEADER: Ubicación: core/config.py
# NG-HEADER: Descripción: Configuración central del secuenciador de SKU.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Configuración central del secuenciador de SKU."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Marcador que debe sustituirse fuera de desarrollo
ADMIN_TOKEN_PLACEHOLDER = "REEMPLAZAR_ADMIN_TOKEN"

# Carga automática de variables definidas en .env
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass
class Settings:
    """Parámetros de configuración leídos de variables de entorno."""

    env: str = os.getenv("ENV", "dev")
    db_url: str = os.getenv("DB_URL", "")
    # Soporte para componer la URL si no se pasa DB_URL directamente
    db_host: str = os.getenv("DB_HOST", "localhost")
    db_port: str = os.getenv("DB_PORT", "5432")
    db_name: str = os.getenv("DB_NAME", "skuseq")
    db_user: str = os.getenv("DB_USER", "skuseq")
    db_pass: str = os.getenv("DB_PASS", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Formato de SKU: <prefijo><número decimal sin relleno>
    sku_prefix: str = os.getenv("SKU_PREFIX", "LA")
    # Espejo opcional del SKU en el metafield custom.generated_sku
    sku_metafield_mirror: bool = _flag("SKU_METAFIELD_MIRROR", "false")

    # Integración Shopify
    shopify_api_version: str = os.getenv("SHOPIFY_API_VERSION", "2024-07")
    shopify_api_secret: str = os.getenv("SHOPIFY_API_SECRET", "")
    shopify_timeout_seconds: float = float(os.getenv("SHOPIFY_TIMEOUT_SECONDS", "10"))
    webhook_verify_hmac: bool = _flag("WEBHOOK_VERIFY_HMAC", "true")

    # Token para endpoints administrativos (contador, reserva de SKUs)
    admin_api_token: str = os.getenv("ADMIN_API_TOKEN", ADMIN_TOKEN_PLACEHOLDER)

    def __post_init__(self) -> None:
        if not self.db_url:
            # Intentar construir desde variables sueltas
            if self.db_pass:
                from urllib.parse import quote_plus as _qp
                pw_enc = _qp(self.db_pass)
            else:
                pw_enc = ""
            if self.db_user and pw_enc:
                candidate = f"postgresql+psycopg://{self.db_user}:{pw_enc}@{self.db_host}:{self.db_port}/{self.db_name}"
            elif self.db_user and self.env != "dev":
                candidate = f"postgresql+psycopg://{self.db_user}@{self.db_host}:{self.db_port}/{self.db_name}"
            else:
                candidate = ""
            if candidate:
                self.db_url = candidate
        if not self.db_url:
            if self.env == "dev":
                # Fallback amigable para no bloquear el arranque local sin Postgres
                self.db_url = "sqlite+aiosqlite:///./dev.db"
            else:
                raise RuntimeError("DB_URL debe definirse en el entorno")
        if not self.sku_prefix or any(ch.isdigit() for ch in self.sku_prefix):
            raise RuntimeError("SKU_PREFIX debe ser no vacío y sin dígitos")
        if self.admin_api_token == ADMIN_TOKEN_PLACEHOLDER:
            if self.env == "dev":
                self.admin_api_token = "dev-admin-token"
            else:
                raise RuntimeError(
                    "ADMIN_API_TOKEN debe sobrescribirse; reemplace el placeholder 'REEMPLAZAR_ADMIN_TOKEN'"
                )
        if self.env != "dev" and not self.shopify_api_secret and self.webhook_verify_hmac:
            logging.getLogger("skuseq.config").warning(
                "SEGURIDAD: SHOPIFY_API_SECRET vacío con ENV=%s; los webhooks serán rechazados", self.env
            )


settings = Settings()
