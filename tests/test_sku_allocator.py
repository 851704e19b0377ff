#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: test_sku_allocator.py
# NG-HEADER: Ubicación: tests/test_sku_allocator.py
# NG-HEADER: Descripción: Pruebas del asignador de SKUs (sondeo, avance del contador, concurrencia).
# NG-HEADER: Lineamientos: Ver AGENTS.md
"""
Incluye:
- Saltos por SKUs ya existentes en el catálogo
- Avance del contador por números probados (aceptados o descartados)
- Rollback ante errores de sondeo
- Dos asignaciones simultáneas para la misma tienda
"""
import asyncio

import pytest

from core.errors import ConfigurationError, InvalidInput, ProbeError
from db.session import SessionLocal
from db.sku_counter import get_counter, set_counter
from db.sku_ledger import insert_allocation
from conftest import FakeCatalog

pytestmark = pytest.mark.asyncio

SHOP = "demo-shop.myshopify.com"


async def test_allocate_skips_existing_skus(db_session, allocator):
    catalog = FakeCatalog(existing={f"LA{n}" for n in range(1000, 1005)})
    await set_counter(db_session, SHOP, 1000)
    numbers = await allocator.allocate(db_session, SHOP, 1, catalog)
    assert numbers == [1005]
    assert await get_counter(db_session, SHOP) == 1006
    assert catalog.probe_calls == [f"LA{n}" for n in range(1000, 1006)]


async def test_allocate_returns_ascending_distinct_batch(db_session, allocator):
    catalog = FakeCatalog(existing={"LA11", "LA13"})
    await set_counter(db_session, SHOP, 10)
    numbers = await allocator.allocate(db_session, SHOP, 4, catalog)
    assert numbers == [10, 12, 14, 15]
    assert await get_counter(db_session, SHOP) == 16


async def test_zero_count_does_not_touch_counter(db_session, allocator, fake_catalog):
    # Sin contador configurado: con count=0 ni siquiera se consulta
    assert await allocator.allocate(db_session, SHOP, 0, fake_catalog) == []
    assert fake_catalog.probe_calls == []
    assert await get_counter(db_session, SHOP) is None


async def test_negative_count_is_invalid(db_session, allocator, fake_catalog):
    await set_counter(db_session, SHOP, 1)
    with pytest.raises(InvalidInput):
        await allocator.allocate(db_session, SHOP, -1, fake_catalog)
    assert await get_counter(db_session, SHOP) == 1


async def test_missing_counter_is_configuration_error(db_session, allocator, fake_catalog):
    with pytest.raises(ConfigurationError):
        await allocator.allocate(db_session, SHOP, 1, fake_catalog)
    assert fake_catalog.probe_calls == []


async def test_probe_error_leaves_counter_untouched(db_session, allocator):
    catalog = FakeCatalog(existing={"LA1001"})
    catalog.probe_fail_on = {"LA1003"}
    await set_counter(db_session, SHOP, 1000)
    with pytest.raises(ProbeError):
        await allocator.allocate(db_session, SHOP, 3, catalog)
    assert await get_counter(db_session, SHOP) == 1000

    # El mismo rango se vuelve a probar en la siguiente llamada
    catalog.probe_fail_on = set()
    catalog.probe_calls.clear()
    assert await allocator.allocate(db_session, SHOP, 3, catalog) == [1000, 1002, 1003]
    assert catalog.probe_calls[0] == "LA1000"
    assert await get_counter(db_session, SHOP) == 1004


async def test_counter_always_exceeds_every_returned_number(db_session, allocator):
    catalog = FakeCatalog(existing={"LA3", "LA4", "LA9"})
    await set_counter(db_session, SHOP, 0)
    seen: list[int] = []
    for count in (2, 0, 3, 1, 4):
        seen += await allocator.allocate(db_session, SHOP, count, catalog)
        current = await get_counter(db_session, SHOP)
        assert all(current > n for n in seen)
    assert len(seen) == len(set(seen)) == 10
    assert not {f"LA{n}" for n in seen} & {"LA3", "LA4", "LA9"}


async def test_rejected_numbers_are_never_retried(db_session, allocator):
    catalog = FakeCatalog(existing={"LA500"})
    await set_counter(db_session, SHOP, 500)
    assert await allocator.allocate(db_session, SHOP, 1, catalog) == [501]
    # Aunque el SKU desaparezca del catálogo, el contador ya lo dejó atrás
    catalog.existing.clear()
    assert await allocator.allocate(db_session, SHOP, 1, catalog) == [502]


async def test_concurrent_allocations_never_overlap(db_session, allocator):
    catalog = FakeCatalog()
    await set_counter(db_session, SHOP, 7000)

    async def _one() -> list[int]:
        async with SessionLocal() as s:
            return await allocator.allocate(s, SHOP, 1, catalog)

    a, b = await asyncio.gather(_one(), _one())
    assert a != b
    assert sorted(a + b) == [7000, 7001]
    assert await get_counter(db_session, SHOP) == 7002


async def test_different_shops_do_not_share_lock(allocator):
    assert allocator.lock_for("a.myshopify.com") is not allocator.lock_for("b.myshopify.com")
    assert allocator.lock_for("a.myshopify.com") is allocator.lock_for("a.myshopify.com")


async def test_admin_reset_below_issued_numbers_never_duplicates(db_session, allocator):
    catalog = FakeCatalog()
    await set_counter(db_session, SHOP, 100)
    first = await allocator.allocate(db_session, SHOP, 3, catalog)
    catalog.existing |= {f"LA{n}" for n in first}  # ya escritos en el catálogo

    await set_counter(db_session, SHOP, 100)
    catalog.probe_calls.clear()
    second = await allocator.allocate(db_session, SHOP, 2, catalog)
    assert second == [103, 104]
    assert not set(first) & set(second)
    # Probes desperdiciados por el reset, sin duplicados
    assert catalog.probe_calls == ["LA100", "LA101", "LA102", "LA103", "LA104"]


async def test_numbers_recorded_in_ledger_are_skipped_without_catalog_lookup(db_session, allocator):
    # Fila del ledger cuya escritura en el catálogo nunca llegó
    await insert_allocation(db_session, shop=SHOP, product_id="p1", variant_id="v1", sku_number=10)
    await db_session.commit()
    catalog = FakeCatalog()
    await set_counter(db_session, SHOP, 10)
    assert await allocator.allocate(db_session, SHOP, 1, catalog) == [11]
    assert catalog.probe_calls == ["LA11"]
    assert await get_counter(db_session, SHOP) == 12


async def test_ledger_of_other_shop_does_not_block(db_session, allocator):
    await insert_allocation(db_session, shop="otra.myshopify.com", product_id="p1", variant_id="v1", sku_number=10)
    await db_session.commit()
    await set_counter(db_session, SHOP, 10)
    assert await allocator.allocate(db_session, SHOP, 1, FakeCatalog()) == [10]
