#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: 20250301_sku_sequencer_tables.py
# NG-HEADER: Ubicación: db/migrations/versions/20250301_sku_sequencer_tables.py
# NG-HEADER: Descripción: Crea store_counters, product_skus y shop_sessions
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""Tablas del secuenciador de SKU

Revision ID: 20250301_sku_sequencer_tables
Revises:
Create Date: 2025-03-01
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = '20250301_sku_sequencer_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Crea las tablas.

    store_counters.next_candidate: próximo entero a probar (avanza también por números descartados).
    product_skus: ledger de asignaciones; unicidad (shop, variant_id) como clave de idempotencia.
    """
    op.create_table(
        'store_counters',
        sa.Column('shop', sa.String(length=255), primary_key=True),
        sa.Column('next_candidate', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('next_candidate >= 0', name='ck_store_counters_non_negative'),
    )
    op.create_table(
        'product_skus',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shop', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('variant_id', sa.String(length=64), nullable=False),
        sa.Column('sku_number', sa.BigInteger(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='allocated'),
        sa.Column('catalog_synced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('shop', 'variant_id', name='uq_product_skus_shop_variant'),
    )
    op.create_index('ix_product_skus_shop_product', 'product_skus', ['shop', 'product_id'])
    op.create_index('ix_product_skus_shop_number', 'product_skus', ['shop', 'sku_number'])
    op.create_table(
        'shop_sessions',
        sa.Column('shop', sa.String(length=255), primary_key=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('scope', sa.String(length=512), nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('shop_sessions')
    op.drop_index('ix_product_skus_shop_number', table_name='product_skus')
    op.drop_index('ix_product_skus_shop_product', table_name='product_skus')
    op.drop_table('product_skus')
    op.drop_table('store_counters')
