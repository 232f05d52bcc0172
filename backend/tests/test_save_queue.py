from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.save_queue import SaveQueue, SaveQueueRegistry  # noqa: E402


def test_saves_run_one_at_a_time_in_submission_order():
    events: list[str] = []

    async def _save(name: str, delay: float):
        events.append(f"start:{name}")
        await asyncio.sleep(delay)
        events.append(f"end:{name}")
        return name

    async def _run():
        queue = SaveQueue()
        return await asyncio.gather(
            queue.submit(lambda: _save("a", 0.02)),
            queue.submit(lambda: _save("b", 0.0)),
            queue.submit(lambda: _save("c", 0.01)),
        )

    results = asyncio.run(_run())

    assert results == ["a", "b", "c"]
    assert events == ["start:a", "end:a", "start:b", "end:b", "start:c", "end:c"]


def test_failure_is_reported_to_its_submitter_only():
    attempts: list[str] = []

    async def _fail():
        attempts.append("fail")
        raise RuntimeError("disk full")

    async def _ok():
        attempts.append("ok")
        return "saved"

    async def _run():
        queue = SaveQueue()
        return await asyncio.gather(queue.submit(_fail), queue.submit(_ok), return_exceptions=True)

    first, second = asyncio.run(_run())

    assert isinstance(first, RuntimeError)
    assert second == "saved"
    assert attempts == ["fail", "ok"]


def test_failed_save_is_not_retried():
    calls = {"n": 0}

    async def _fail():
        calls["n"] += 1
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(SaveQueue().submit(_fail))
    assert calls["n"] == 1


def test_registry_hands_out_one_queue_per_key():
    registry = SaveQueueRegistry()
    assert registry.get("alice") is registry.get("alice")
    assert registry.get("alice") is not registry.get("bob")
    assert registry.get(None) is registry.get("local")

    old = registry.get("bob")
    registry.discard("bob")
    assert registry.get("bob") is not old
