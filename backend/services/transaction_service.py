"""Income/expense ledger kept alongside the day plans."""
from __future__ import annotations

import math

from config import settings
from storage.base import StorageAdapter
from storage.models import Transaction, sort_transactions
from utils.datetime_utils import now_ms, parse_date_key
from utils.ids import generate_id
from utils.text import clean_text

VALID_KINDS = {"income", "expense"}


def _require_kind(kind: str) -> str:
    if kind not in VALID_KINDS:
        raise ValueError(f"kind must be one of {sorted(VALID_KINDS)}")
    return kind


def _require_amount(amount: float) -> float:
    value = float(amount)
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValueError("amount must be a positive number")
    return round(value, 2)


def _find(items: list[Transaction], transaction_id: str) -> int:
    for idx, item in enumerate(items):
        if item.id == transaction_id:
            return idx
    raise LookupError(f"Transaction {transaction_id} not found")


def compute_totals(items: list[Transaction]) -> dict[str, dict[str, float]]:
    """Income, expense and net per currency."""
    totals: dict[str, dict[str, float]] = {}
    for item in items:
        bucket = totals.setdefault(item.currency, {"income": 0.0, "expense": 0.0, "net": 0.0})
        bucket[item.kind] += item.amount
    for bucket in totals.values():
        bucket["income"] = round(bucket["income"], 2)
        bucket["expense"] = round(bucket["expense"], 2)
        bucket["net"] = round(bucket["income"] - bucket["expense"], 2)
    return totals


async def list_transactions(
    storage: StorageAdapter,
    *,
    start: str | None = None,
    end: str | None = None,
    kind: str | None = None,
) -> list[Transaction]:
    if start:
        parse_date_key(start)
    if end:
        parse_date_key(end)
    if kind:
        _require_kind(kind)
    items = await storage.get_transactions()
    items = [
        t
        for t in items
        if (not start or t.date >= start) and (not end or t.date <= end) and (not kind or t.kind == kind)
    ]
    return sort_transactions(items)


async def create_transaction(
    storage: StorageAdapter,
    *,
    kind: str,
    amount: float,
    date: str,
    category: str = "",
    note: str | None = None,
    currency: str | None = None,
) -> Transaction:
    parse_date_key(date)
    stamp = now_ms()
    item = Transaction(
        id=generate_id(),
        kind=_require_kind(kind),
        amount=_require_amount(amount),
        currency=(currency or settings.DEFAULT_CURRENCY).strip().upper(),
        category=clean_text(category),
        note=clean_text(note) or None if note else None,
        date=date,
        created_at=stamp,
        updated_at=stamp,
    )
    await storage.save_transactions([*await storage.get_transactions(), item])
    return item


async def update_transaction(storage: StorageAdapter, transaction_id: str, **changes) -> Transaction:
    items = await storage.get_transactions()
    idx = _find(items, transaction_id)
    update: dict = {"updated_at": now_ms()}
    for field, value in changes.items():
        if value is None:
            continue
        if field == "kind":
            update["kind"] = _require_kind(value)
        elif field == "amount":
            update["amount"] = _require_amount(value)
        elif field == "date":
            parse_date_key(value)
            update["date"] = value
        elif field == "currency":
            update["currency"] = value.strip().upper()
        elif field in {"category", "note"}:
            update[field] = clean_text(value)
        else:
            raise ValueError(f"Unknown transaction field: {field}")
    items[idx] = items[idx].model_copy(update=update)
    await storage.save_transactions(items)
    return items[idx]


async def delete_transaction(storage: StorageAdapter, transaction_id: str) -> None:
    items = await storage.get_transactions()
    _find(items, transaction_id)
    await storage.save_transactions([t for t in items if t.id != transaction_id])
