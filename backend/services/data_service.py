from __future__ import annotations

import logging
from typing import Any

from storage.base import StorageAdapter
from utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1


async def export_user_data(storage: StorageAdapter) -> dict[str, Any]:
    """Everything the current user owns, as one camelCase JSON document."""
    presets = await storage.get_presets()
    dates = await storage.list_day_plan_dates()
    day_plans = [(await storage.get_day_plan(date)).to_json() for date in dates]
    summaries = [s.to_json() for s in await storage.get_all_sealed_day_summaries()]
    progress = await storage.get_user_progress()

    return {
        "version": EXPORT_VERSION,
        "exportedAt": now_ms(),
        "backend": storage.backend_name,
        "presets": {pid: p.to_json() for pid, p in presets.items()},
        "activePresetId": await storage.get_active_preset_id(),
        "dayPlans": day_plans,
        "daySummaries": summaries,
        "userProgress": progress.to_json() if progress else None,
        "journalEntries": [e.to_json() for e in await storage.get_journal_entries()],
        "journalActiveEntryId": await storage.get_active_entry_id(),
        "goals": [g.to_json() for g in await storage.get_goals()],
        "transactions": [t.to_json() for t in await storage.get_transactions()],
    }


async def reset_user_data(storage: StorageAdapter) -> dict[str, int]:
    """Wipe the user's data. Presets are re-seeded on the next read."""
    counts = {
        "presets": len(await storage.get_presets()),
        "day_plans": len(await storage.list_day_plan_dates()),
        "journal_entries": len(await storage.get_journal_entries()),
        "goals": len(await storage.get_goals()),
        "transactions": len(await storage.get_transactions()),
    }
    await storage.reset()
    logger.info(f"Reset user data ({storage.backend_name}): {counts}")
    return counts
