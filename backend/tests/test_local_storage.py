from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.progress_service import with_xp  # noqa: E402
from storage.errors import StorageError, StorageSerializationError  # noqa: E402
from storage.local import LocalStorageAdapter  # noqa: E402
from storage.models import DayPlan, DayPlanItem, DaySummary, Goal, Transaction  # noqa: E402
from utils.kv_store import JsonKeyValueStore  # noqa: E402


def test_reads_return_defaults_when_empty():
    storage = LocalStorageAdapter(JsonKeyValueStore())

    assert asyncio.run(storage.get_presets()) == {}
    assert asyncio.run(storage.get_active_preset_id()) is None
    assert asyncio.run(storage.get_day_plan("2025-06-01")) == DayPlan.empty("2025-06-01")
    assert asyncio.run(storage.get_day_summary("2025-06-01")) is None
    assert asyncio.run(storage.get_user_progress()) is None
    assert asyncio.run(storage.get_journal_entries()) == []
    assert asyncio.run(storage.get_goals()) == []
    assert asyncio.run(storage.get_transactions()) == []


def test_malformed_values_are_treated_as_absent():
    store = JsonKeyValueStore()
    store.set_item("p01:dayplan:2025-06-01", "{not json")
    store.set_item("p01:userProgress", json.dumps({"xp": "lots"}))
    store.set_item("p01:goals", json.dumps([{"id": "g1", "text": "ok"}, {"broken": True}]))
    storage = LocalStorageAdapter(store)

    assert asyncio.run(storage.get_day_plan("2025-06-01")) == DayPlan.empty("2025-06-01")
    assert asyncio.run(storage.get_user_progress()) is None
    assert [g.id for g in asyncio.run(storage.get_goals())] == ["g1"]


def test_day_plan_stored_under_another_date_is_ignored():
    store = JsonKeyValueStore()
    store.set_json("p01:dayplan:2025-06-02", DayPlan(date="2025-06-01").to_json())
    storage = LocalStorageAdapter(store)

    assert asyncio.run(storage.get_day_plan("2025-06-02")) == DayPlan.empty("2025-06-02")


def test_records_round_trip_in_camel_case(tmp_path):
    path = tmp_path / "store.json"
    storage = LocalStorageAdapter(JsonKeyValueStore(path))
    plan = DayPlan(
        date="2025-06-01",
        active_preset_id="p1",
        preset_updated_at=10,
        items=[
            DayPlanItem(
                id="i1",
                kind="task",
                text="Ship",
                time="09:00",
                source="preset",
                preset_id="p1",
                preset_item_id="t1",
                created_at=5,
            )
        ],
    )
    asyncio.run(storage.save_day_plan(plan))

    raw = json.loads(json.loads(path.read_text(encoding="utf-8"))["p01:dayplan:2025-06-01"])
    assert raw["activePresetId"] == "p1"
    assert raw["items"][0]["presetItemId"] == "t1"

    reopened = LocalStorageAdapter(JsonKeyValueStore(path))
    assert asyncio.run(reopened.get_day_plan("2025-06-01")) == plan
    assert asyncio.run(reopened.list_day_plan_dates()) == ["2025-06-01"]


def test_update_user_progress_starts_from_default():
    storage = LocalStorageAdapter(JsonKeyValueStore())

    updated = asyncio.run(storage.update_user_progress(lambda prev: with_xp(prev, prev.xp + 120)))

    assert updated.xp == 120
    assert updated.rank_key == "operator"
    assert updated.xp_to_next == 130
    assert asyncio.run(storage.get_user_progress()) == updated


def test_set_user_progress_patch_rejects_unknown_fields():
    storage = LocalStorageAdapter(JsonKeyValueStore())
    progress = asyncio.run(storage.set_user_progress({"xp": 600, "best_streak": 4}))
    assert progress.rank_key == "elite"
    assert progress.best_streak == 4

    with pytest.raises(ValueError):
        asyncio.run(storage.set_user_progress({"rank_key": "monk"}))


def test_sealed_summaries_listed_newest_first():
    storage = LocalStorageAdapter(JsonKeyValueStore())
    for date, sealed in (("2025-06-01", True), ("2025-06-03", True), ("2025-06-02", False)):
        asyncio.run(storage.save_day_summary(DaySummary(date=date, is_sealed=sealed)))

    dates = [s.date for s in asyncio.run(storage.get_all_sealed_day_summaries())]
    assert dates == ["2025-06-03", "2025-06-01"]


def test_transactions_sorted_by_date_then_updated_at():
    storage = LocalStorageAdapter(JsonKeyValueStore())
    items = [
        Transaction(id="a", kind="expense", amount=5, date="2025-06-01", updated_at=3),
        Transaction(id="b", kind="income", amount=9, date="2025-06-02", updated_at=1),
        Transaction(id="c", kind="expense", amount=2, date="2025-06-01", updated_at=7),
    ]
    asyncio.run(storage.save_transactions(items))

    assert [t.id for t in asyncio.run(storage.get_transactions())] == ["b", "c", "a"]


def test_reset_removes_only_prefixed_keys():
    store = JsonKeyValueStore()
    store.set_item("other:keep", "1")
    storage = LocalStorageAdapter(store)
    asyncio.run(storage.save_goals([Goal(id="g1", text="Run")]))
    asyncio.run(storage.set_active_preset_id("default"))

    asyncio.run(storage.reset())

    assert store.keys("p01:") == []
    assert store.get_item("other:keep") == "1"


def test_failed_disk_write_leaves_store_unchanged(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonKeyValueStore(blocker / "store.json")
    storage = LocalStorageAdapter(store)

    with pytest.raises(StorageError):
        asyncio.run(storage.save_goals([Goal(id="g1", text="Run")]))

    assert store.keys() == []
    assert asyncio.run(storage.get_goals()) == []


def test_unserializable_value_is_not_stored():
    store = JsonKeyValueStore()
    assert store.set_json("p01:bad", {"when": object()}) is False
    assert store.get_item("p01:bad") is None

    storage = LocalStorageAdapter(store)
    with pytest.raises(StorageSerializationError):
        storage._write("p01:bad", {1, 2})
    assert store.keys() == []
