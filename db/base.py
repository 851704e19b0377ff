# NG-HEADER: Nombre de archivo: base.py
# NG-HEADER: Ubicación: db/base.py
# NG-HEADER: Descripción: Declaración base de SQLAlchemy para contadores y registro de SKUs.
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Declarative base compartida por ``store_counters``, ``product_skus`` y ``shop_sessions``."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
