from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import UserIdentity  # noqa: E402
from config import Settings  # noqa: E402
from db.database import create_session_factory  # noqa: E402
from services.preset_service import load_presets  # noqa: E402
from storage.database import DatabaseStorageAdapter  # noqa: E402
from storage.errors import NotAuthenticatedError, StorageNotConfiguredError  # noqa: E402
from storage.factory import build_storage_factory, get_storage_adapter  # noqa: E402
from storage.models import (  # noqa: E402
    DayPlan,
    DayPlanItem,
    DaySummary,
    Goal,
    JournalEntry,
    Preset,
    PresetItem,
    Transaction,
)


def _session_factory():
    return create_session_factory("sqlite:///:memory:")


def test_reads_without_identity_degrade_to_defaults():
    storage = DatabaseStorageAdapter(_session_factory(), UserIdentity.anonymous())

    assert asyncio.run(storage.get_presets()) == {}
    assert asyncio.run(storage.get_day_plan("2025-06-01")) == DayPlan.empty("2025-06-01")
    assert asyncio.run(storage.get_user_progress()) is None
    assert asyncio.run(storage.get_transactions()) == []


def test_writes_without_identity_fail_fast():
    storage = DatabaseStorageAdapter(_session_factory(), UserIdentity.anonymous())

    with pytest.raises(NotAuthenticatedError):
        asyncio.run(storage.save_day_plan(DayPlan.empty("2025-06-01")))
    with pytest.raises(NotAuthenticatedError):
        asyncio.run(storage.update_user_progress(lambda prev: prev))


def test_unconfigured_backend_reads_empty_and_refuses_writes():
    storage = DatabaseStorageAdapter(None, UserIdentity.fixed("u1"))

    assert asyncio.run(storage.get_goals()) == []
    with pytest.raises(StorageNotConfiguredError):
        asyncio.run(storage.save_goals([Goal(id="g1", text="Run")]))


def test_factory_keeps_database_backend_when_url_missing():
    factory = build_storage_factory(Settings(STORAGE_BACKEND="database", DATABASE_URL=""))
    assert factory.backend == "database"
    assert factory.session_factory is None
    assert isinstance(factory(UserIdentity.fixed("u1")), DatabaseStorageAdapter)

    with pytest.raises(ValueError):
        get_storage_adapter("cloud", UserIdentity.anonymous())


def test_seeded_presets_are_not_persisted_without_identity():
    storage = DatabaseStorageAdapter(_session_factory(), UserIdentity.anonymous())
    presets = asyncio.run(load_presets(storage))
    assert "default" in presets
    assert asyncio.run(storage.get_presets()) == {}


def test_records_round_trip_per_user():
    session_factory = _session_factory()
    alice = DatabaseStorageAdapter(session_factory, UserIdentity.fixed("alice"))
    bob = DatabaseStorageAdapter(session_factory, UserIdentity.fixed("bob"))

    preset = Preset(id="p1", name="Mine", habits=[PresetItem(id="h1", text="Read")], updated_at=9)
    plan = DayPlan(
        date="2025-06-01",
        active_preset_id="p1",
        preset_updated_at=9,
        items=[
            DayPlanItem(
                id="i1",
                kind="habit",
                text="Read",
                completed=True,
                source="preset",
                preset_id="p1",
                preset_item_id="h1",
                created_at=3,
            )
        ],
        archived=[DayPlanItem(id="i0", kind="task", text="Old", source="manual", created_at=1)],
    )
    summary = DaySummary(date="2025-06-01", operator_pct=100, is_sealed=True, sealed_at=50, status="perfect")

    asyncio.run(alice.save_presets({"p1": preset}))
    asyncio.run(alice.save_day_plan(plan))
    asyncio.run(alice.save_day_summary(summary))
    asyncio.run(alice.save_journal_entries([JournalEntry(id="j1", date="2025-06-01", content="ok")]))
    asyncio.run(alice.save_transactions([Transaction(id="t1", kind="income", amount=12.5, date="2025-06-01")]))

    assert asyncio.run(alice.get_presets()) == {"p1": preset}
    assert asyncio.run(alice.get_day_plan("2025-06-01")) == plan
    assert asyncio.run(alice.get_day_summary("2025-06-01")) == summary
    assert asyncio.run(alice.get_all_sealed_day_summaries()) == [summary]
    assert [e.content for e in asyncio.run(alice.get_journal_entries())] == ["ok"]
    assert asyncio.run(alice.get_transactions())[0].amount == 12.5

    assert asyncio.run(bob.get_presets()) == {}
    assert asyncio.run(bob.get_day_plan("2025-06-01")) == DayPlan.empty("2025-06-01")


def test_save_presets_removes_missing_presets():
    storage = DatabaseStorageAdapter(_session_factory(), UserIdentity.fixed("u1"))
    first = Preset(id="a", name="A", updated_at=1)
    second = Preset(id="b", name="B", updated_at=1)
    asyncio.run(storage.save_presets({"a": first, "b": second}))
    asyncio.run(storage.save_presets({"b": second}))

    assert set(asyncio.run(storage.get_presets())) == {"b"}


def test_active_preset_lives_on_progress_record():
    storage = DatabaseStorageAdapter(_session_factory(), UserIdentity.fixed("u1"))
    asyncio.run(storage.set_active_preset_id("trading"))

    assert asyncio.run(storage.get_active_preset_id()) == "trading"
    progress = asyncio.run(storage.get_user_progress())
    assert progress.active_preset_id == "trading"
    assert progress.xp == 0


def test_identity_invalidation_switches_user():
    current = {"uid": "alice"}
    identity = UserIdentity(lambda: current["uid"])
    storage = DatabaseStorageAdapter(_session_factory(), identity)
    asyncio.run(storage.save_goals([Goal(id="g1", text="Run")]))

    current["uid"] = None
    assert [g.id for g in asyncio.run(storage.get_goals())] == ["g1"]

    identity.invalidate()
    assert asyncio.run(storage.get_goals()) == []


def test_reset_only_touches_current_user():
    session_factory = _session_factory()
    alice = DatabaseStorageAdapter(session_factory, UserIdentity.fixed("alice"))
    bob = DatabaseStorageAdapter(session_factory, UserIdentity.fixed("bob"))
    asyncio.run(alice.save_goals([Goal(id="g1", text="Run")]))
    asyncio.run(bob.save_goals([Goal(id="g1", text="Swim")]))

    asyncio.run(alice.reset())

    assert asyncio.run(alice.get_goals()) == []
    assert [g.text for g in asyncio.run(bob.get_goals())] == ["Swim"]
