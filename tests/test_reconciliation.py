"""
Tests for external-id collisions and entry reconciliation
"""

import asyncio

import pytest

from aggregator.core.exceptions import NotFoundError

from conftest import make_entry


def _claim(external_id, title=None, tags=()):
    def mutate(entry):
        entry.external_id = external_id
        entry.is_enriched = True
        entry.tags |= set(tags)
        if title:
            entry.title = title
    return mutate


async def _pair(store):
    older = await store.insert(make_entry(provider_key="alpha", provider_item_id="1", created_offset=0))
    newer = await store.insert(
        make_entry(title="流浪地球 ", provider_key="beta", provider_item_id="88", created_offset=30,
                   tags={"recent"})
    )
    return older, newer


@pytest.mark.asyncio
async def test_plain_update_writes_through(merge_engine, store):
    older, _ = await _pair(store)

    updated = await merge_engine.apply_update(older.id, _claim(100))

    assert updated.id == older.id
    assert updated.external_id == 100
    assert updated.is_enriched is True
    assert updated.version == older.version + 1


@pytest.mark.asyncio
async def test_update_of_missing_entry_returns_none(merge_engine):
    assert await merge_engine.apply_update("missing", _claim(100)) is None


@pytest.mark.asyncio
async def test_collision_merges_into_older_entry(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(older.id, _claim(100))

    survivor = await merge_engine.apply_update(newer.id, _claim(100, title="The Wandering Earth"))

    assert survivor.id == older.id
    assert survivor.external_id == 100
    assert survivor.is_enriched is True
    assert survivor.title == "The Wandering Earth"
    assert {r.identity for r in survivor.sources} == {("alpha", "1"), ("beta", "88")}
    assert "recent" in survivor.tags
    assert await store.get(newer.id) is None
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_collision_from_older_entry_keeps_older_entry(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(newer.id, _claim(100))

    survivor = await merge_engine.apply_update(older.id, _claim(100))

    assert survivor.id == older.id
    assert survivor.external_id == 100
    assert len(survivor.sources) == 2
    assert await store.find_by_external_id(100) == survivor


@pytest.mark.asyncio
async def test_reconciliation_is_idempotent(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(older.id, _claim(100))
    survivor = await merge_engine.apply_update(newer.id, _claim(100))

    assert await merge_engine.apply_update(newer.id, _claim(100)) is None
    again = await merge_engine.reconcile(older.id, newer.id)

    assert again.id == survivor.id
    assert again.sources == survivor.sources
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_concurrent_claims_converge(merge_engine, store):
    older, newer = await _pair(store)

    await asyncio.gather(
        merge_engine.apply_update(older.id, _claim(100)),
        merge_engine.apply_update(newer.id, _claim(100)),
    )

    holder = await store.find_by_external_id(100)
    assert await store.count() == 1
    assert holder.id == older.id
    assert len(holder.sources) == 2


@pytest.mark.asyncio
async def test_operator_reconcile_defaults_to_oldest(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(newer.id, _claim(200))

    survivor = await merge_engine.reconcile(newer.id, older.id)

    assert survivor.id == older.id
    assert survivor.external_id == 200
    assert survivor.is_enriched is True


@pytest.mark.asyncio
async def test_operator_reconcile_with_master(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(older.id, _claim(300))

    survivor = await merge_engine.reconcile(older.id, newer.id, master_id=newer.id)

    assert survivor.id == newer.id
    assert survivor.external_id == 300
    assert await store.get(older.id) is None
    assert {r.provider_key for r in survivor.sources} == {"alpha", "beta"}


@pytest.mark.asyncio
async def test_survivor_external_id_wins(merge_engine, store):
    older, newer = await _pair(store)
    await merge_engine.apply_update(older.id, _claim(1))
    await merge_engine.apply_update(newer.id, _claim(2))

    survivor = await merge_engine.reconcile(older.id, newer.id)

    assert survivor.external_id == 1
    assert await store.find_by_external_id(2) is None


@pytest.mark.asyncio
async def test_reconcile_unknown_master(merge_engine, store):
    older, newer = await _pair(store)

    with pytest.raises(NotFoundError):
        await merge_engine.reconcile(older.id, newer.id, master_id="somebody-else")


@pytest.mark.asyncio
async def test_reconcile_missing_entries(merge_engine, store):
    older, _ = await _pair(store)

    assert (await merge_engine.reconcile(older.id, "gone")).id == older.id
    with pytest.raises(NotFoundError):
        await merge_engine.reconcile("gone", "also-gone")
