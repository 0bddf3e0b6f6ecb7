import asyncio

import pytest
from sqlalchemy import text

from conftest import failing_session_factory, make_node
from node_registry.errors import InvalidRequest, NotFound, StoreError, ValidationError
from node_registry.registry.service import NodeRegistry, RegistryStoreService
from node_registry.schemas.node import REQUIRED_FIELDS, Node, validate_node


def node(node_id="n1", **overrides) -> Node:
    return validate_node(make_node(node_id, **overrides))


@pytest.mark.asyncio
async def test_upsert_then_get_round_trip(registry):
    await registry.upsert(node("n1"))

    assert await registry.get("n1") == node("n1")


@pytest.mark.asyncio
async def test_upsert_is_idempotent_and_replaces_all_fields(registry):
    await registry.upsert(node("n1"))
    await registry.upsert(node("n1", nodeIP="10.0.0.2", nodePxVersion="1.2.4"))

    nodes = await registry.list()
    assert nodes == [node("n1", nodeIP="10.0.0.2", nodePxVersion="1.2.4")]


@pytest.mark.asyncio
@pytest.mark.parametrize("attr,field", REQUIRED_FIELDS)
async def test_upsert_with_empty_field_does_not_mutate(registry, attr, field):
    bad = node("n1").model_copy(update={attr: ""})

    with pytest.raises(ValidationError) as exc_info:
        await registry.upsert(bad)
    assert exc_info.value.field == field

    with pytest.raises(NotFound):
        await registry.get("n1")
    assert await registry.list() == []


@pytest.mark.asyncio
async def test_get_missing_node(registry):
    with pytest.raises(NotFound):
        await registry.get("ghost")


@pytest.mark.asyncio
async def test_get_and_delete_require_id(registry):
    with pytest.raises(InvalidRequest):
        await registry.get("")
    with pytest.raises(InvalidRequest):
        await registry.delete("")


@pytest.mark.asyncio
async def test_delete_removes_only_target(registry):
    await registry.upsert(node("n1"))
    await registry.upsert(node("n2", nodeIP="10.0.0.9"))

    await registry.delete("n1")

    with pytest.raises(NotFound):
        await registry.get("n1")
    assert await registry.get("n2") == node("n2", nodeIP="10.0.0.9")


@pytest.mark.asyncio
async def test_delete_nonexistent_node(registry):
    await registry.upsert(node("n1"))

    with pytest.raises(NotFound):
        await registry.delete("n2")
    assert [n.node_id for n in await registry.list()] == ["n1"]


@pytest.mark.asyncio
async def test_list_empty(registry):
    assert await registry.list() == []


@pytest.mark.asyncio
async def test_list_matches_live_ids(registry):
    for node_id in ("a", "b", "c", "d"):
        await registry.upsert(node(node_id))
    await registry.delete("b")
    await registry.upsert(node("a", nodeOS="debian"))

    assert {n.node_id for n in await registry.list()} == {"a", "c", "d"}


@pytest.mark.asyncio
async def test_concurrent_upserts_keep_one_whole_payload(registry):
    payloads = [
        node("n1", nodeIP=f"10.0.0.{i}", nodeKernel=f"5.{i}", nodeOS=f"os-{i}", nodePxVersion=f"1.0.{i}")
        for i in range(10)
    ]

    await asyncio.gather(*(registry.upsert(p) for p in payloads))

    assert await registry.get("n1") in payloads
    assert len(await registry.list()) == 1


@pytest.mark.asyncio
async def test_store_failures_become_store_error():
    registry = NodeRegistry(failing_session_factory())

    with pytest.raises(StoreError) as exc_info:
        await registry.get("n1")
    assert exc_info.value.message.startswith("Database error:")

    with pytest.raises(StoreError):
        await registry.upsert(node("n1"))
    with pytest.raises(StoreError):
        await registry.list()
    with pytest.raises(StoreError):
        await registry.delete("n1")
    assert await registry.ping() is False


@pytest.mark.asyncio
async def test_ping(registry):
    assert await registry.ping() is True


@pytest.mark.asyncio
async def test_store_service_provisions_table(settings):
    service = RegistryStoreService(settings)
    await service.start()
    try:
        await service.registry.upsert(node("n1"))
        assert await service.registry.get("n1") == node("n1")
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_row_with_null_columns_is_store_error(engine, registry):
    async with engine.begin() as conn:
        await conn.execute(text('INSERT INTO nodes ("nodeID") VALUES (\'legacy\')'))

    with pytest.raises(StoreError) as exc_info:
        await registry.get("legacy")
    assert exc_info.value.message.startswith("Database error:")

    with pytest.raises(StoreError):
        await registry.list()

    # Overwriting the row repairs it
    await registry.upsert(node("legacy"))
    assert await registry.get("legacy") == node("legacy")


@pytest.mark.asyncio
async def test_cancelled_upsert_leaves_other_requests_running(engine, registry):
    tasks = [asyncio.create_task(registry.upsert(node(f"n{i}"))) for i in range(5)]
    await asyncio.sleep(0)
    tasks[2].cancel()

    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert isinstance(results[2], asyncio.CancelledError) or results[2] is None
    assert [r for i, r in enumerate(results) if i != 2] == [None] * 4

    stored = {n.node_id for n in await registry.list()}
    assert {"n0", "n1", "n3", "n4"} <= stored
    assert await registry.ping() is True
    assert engine.pool.checkedout() == 0
