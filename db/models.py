# NG-HEADER: Nombre de archivo: models.py
# NG-HEADER: Ubicación: db/models.py
# NG-HEADER: Descripción: Modelos ORM de contador por tienda, registro de SKUs y sesiones.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Modelos principales de la base de datos."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ShopCounter(Base):
    """Cursor monótono por tienda: próximo número a probar."""

    __tablename__ = "store_counters"
    __table_args__ = (
        CheckConstraint("next_candidate >= 0", name="ck_store_counters_non_negative"),
    )

    shop: Mapped[str] = mapped_column(String(255), primary_key=True)
    next_candidate: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class ProductSku(Base):
    """Registro (ledger) de SKU asignado por variante."""

    __tablename__ = "product_skus"
    __table_args__ = (
        UniqueConstraint("shop", "variant_id", name="uq_product_skus_shop_variant"),
        Index("ix_product_skus_shop_product", "shop", "product_id"),
        Index("ix_product_skus_shop_number", "shop", "sku_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    shop: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # allocated | preassigned
    source: Mapped[str] = mapped_column(String(16), default="allocated")
    catalog_synced: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ShopSession(Base):
    """Sesión offline (token de acceso) por tienda."""

    __tablename__ = "shop_sessions"

    shop: Mapped[str] = mapped_column(String(255), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[Optional[str]] = mapped_column(String(512))
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
