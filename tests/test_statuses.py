# tests/test_statuses.py

from __future__ import annotations

import pytest

from taskboard.core.errors import ReorderPartialFailure, StoreError
from taskboard.tasks.models import Status

from .fakes import STATUSES


def _order(registry) -> list[str]:
    return [s.id for s in registry.statuses]


@pytest.mark.asyncio
async def test_load_sorts_by_order(registry, store) -> None:
    store.collections[STATUSES]["st-todo"]["order"] = 9

    await registry.load()

    assert _order(registry) == ["st-progress", "st-qa", "st-done", "st-todo"]
    assert registry.first().id == "st-progress"


@pytest.mark.asyncio
async def test_lookups(registry) -> None:
    await registry.load()

    assert registry.in_progress_status_id() == "st-progress"
    assert registry.completed_status_ids() == frozenset({"st-done"})
    assert registry.is_valid_status("st-qa") is True
    assert registry.is_valid_status("st-gone") is False
    assert registry.is_valid_status(None) is False
    assert registry.name_for("st-qa") == "QA"
    assert registry.name_for("st-gone") == ""


def test_lookups_ignore_case_and_whitespace(registry) -> None:
    registry.replace(
        [
            Status(id="a", name="  IN PROGRESS ", color="#000", order=1),
            Status(id="b", name="Approved", color="#000", order=2),
            Status(id="c", name="completed", color="#000", order=3),
            Status(id="d", name="Done-ish", color="#000", order=4),
        ]
    )

    assert registry.in_progress_status_id() == "a"
    assert registry.completed_status_ids() == frozenset({"b", "c"})


def test_empty_registry(registry) -> None:
    assert registry.statuses == ()
    assert registry.first() is None
    assert registry.in_progress_status_id() is None
    assert registry.completed_status_ids() == frozenset()


@pytest.mark.asyncio
async def test_add_status_goes_last(registry, store) -> None:
    await registry.load()

    status = await registry.add_status("Blocked", "#ef4444")

    assert status.order == 5
    assert _order(registry)[-1] == status.id
    assert store.collections[STATUSES][status.id]["name"] == "Blocked"


@pytest.mark.asyncio
async def test_add_first_status_gets_order_one(registry) -> None:
    status = await registry.add_status("Backlog")
    assert status.order == 1


@pytest.mark.asyncio
async def test_add_status_requires_name(registry) -> None:
    with pytest.raises(ValueError):
        await registry.add_status("   ")


@pytest.mark.asyncio
async def test_rename_status(registry, store) -> None:
    await registry.load()

    updated = await registry.update_status("st-qa", name="Review")

    assert updated.name == "Review"
    assert registry.name_for("st-qa") == "Review"
    assert store.collections[STATUSES]["st-qa"]["name"] == "Review"


@pytest.mark.asyncio
async def test_rename_into_in_progress_moves_the_lookup(registry) -> None:
    await registry.load()
    await registry.update_status("st-progress", name="Doing")
    await registry.update_status("st-qa", name="in progress")

    assert registry.in_progress_status_id() == "st-qa"


@pytest.mark.asyncio
async def test_delete_status(registry, store) -> None:
    await registry.load()

    await registry.delete_status("st-qa")

    assert "st-qa" not in _order(registry)
    assert "st-qa" not in store.collections[STATUSES]


@pytest.mark.asyncio
async def test_swap_order_up(registry, store) -> None:
    await registry.load()

    assert await registry.swap_order("st-qa", "up") is True

    assert _order(registry) == ["st-todo", "st-qa", "st-progress", "st-done"]
    assert store.collections[STATUSES]["st-qa"]["order"] == 2
    assert store.collections[STATUSES]["st-progress"]["order"] == 3


@pytest.mark.asyncio
async def test_swap_order_down(registry) -> None:
    await registry.load()

    assert await registry.swap_order("st-todo", "down") is True
    assert _order(registry) == ["st-progress", "st-todo", "st-qa", "st-done"]


@pytest.mark.asyncio
async def test_swap_order_at_edges_is_a_no_op(registry, store) -> None:
    await registry.load()

    assert await registry.swap_order("st-todo", "up") is False
    assert await registry.swap_order("st-done", "down") is False
    assert await registry.swap_order("st-gone", "up") is False
    assert not [c for c in store.calls if c[0] == "update"]


@pytest.mark.asyncio
async def test_swap_order_partial_failure_is_reported(registry, store, monkeypatch) -> None:
    await registry.load()
    original_update = store.update

    async def flaky_update(collection, doc_id, fields):
        if doc_id == "st-progress":
            raise StoreError("write rejected", status_code=500)
        return await original_update(collection, doc_id, fields)

    monkeypatch.setattr(store, "update", flaky_update)

    with pytest.raises(ReorderPartialFailure) as excinfo:
        await registry.swap_order("st-qa", "up")

    assert excinfo.value.failed_ids == ["st-progress"]
    # The registry was reloaded and now shows the collision left behind.
    orders = {s.id: s.order for s in registry.statuses}
    assert orders["st-qa"] == 2
    assert orders["st-progress"] == 2
