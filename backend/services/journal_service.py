from __future__ import annotations

import logging

from storage.base import StorageAdapter
from storage.models import JournalEntry
from utils.datetime_utils import now_ms, parse_date_key
from utils.ids import generate_id

logger = logging.getLogger(__name__)


def _sorted(entries: list[JournalEntry]) -> list[JournalEntry]:
    return sorted(entries, key=lambda e: (e.date, e.updated_at), reverse=True)


def _find(entries: list[JournalEntry], entry_id: str) -> int:
    for idx, entry in enumerate(entries):
        if entry.id == entry_id:
            return idx
    raise LookupError(f"Journal entry {entry_id} not found")


async def list_entries(storage: StorageAdapter, *, date: str | None = None) -> list[JournalEntry]:
    entries = await storage.get_journal_entries()
    if date:
        parse_date_key(date)
        entries = [e for e in entries if e.date == date]
    return _sorted(entries)


async def create_entry(storage: StorageAdapter, date: str, content: str = "", *, activate: bool = True) -> JournalEntry:
    parse_date_key(date)
    stamp = now_ms()
    entry = JournalEntry(id=generate_id(), date=date, content=content, created_at=stamp, updated_at=stamp)
    entries = await storage.get_journal_entries()
    await storage.save_journal_entries([*entries, entry])
    if activate:
        await storage.set_active_entry_id(entry.id)
    return entry


async def update_entry(storage: StorageAdapter, entry_id: str, content: str) -> JournalEntry:
    entries = await storage.get_journal_entries()
    idx = _find(entries, entry_id)
    updated = entries[idx].model_copy(update={"content": content, "updated_at": now_ms()})
    entries[idx] = updated
    await storage.save_journal_entries(entries)
    return updated


async def delete_entry(storage: StorageAdapter, entry_id: str) -> None:
    entries = await storage.get_journal_entries()
    _find(entries, entry_id)
    await storage.save_journal_entries([e for e in entries if e.id != entry_id])
    if await storage.get_active_entry_id() == entry_id:
        await storage.set_active_entry_id(None)


async def get_active_entry(storage: StorageAdapter) -> JournalEntry | None:
    active_id = await storage.get_active_entry_id()
    if not active_id:
        return None
    for entry in await storage.get_journal_entries():
        if entry.id == active_id:
            return entry
    logger.info(f"Active journal entry {active_id} no longer exists")
    return None


async def set_active_entry(storage: StorageAdapter, entry_id: str | None) -> JournalEntry | None:
    if entry_id is None:
        await storage.set_active_entry_id(None)
        return None
    entries = await storage.get_journal_entries()
    entry = entries[_find(entries, entry_id)]
    await storage.set_active_entry_id(entry.id)
    return entry
