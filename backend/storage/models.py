from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


ItemKind = Literal["habit", "task"]
ItemSource = Literal["preset", "manual"]
DayStatus = Literal["perfect", "complete", "partial", "failed"]
TransactionKind = Literal["income", "expense"]


class Record(BaseModel):
    """Stored record. Field names are snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PresetItem(Record):
    id: str = ""  # legacy items may lack one; presets backfill it on load
    text: str
    time: Optional[str] = None  # tasks only


class Preset(Record):
    id: str
    name: str
    habits: list[PresetItem] = []
    tasks: list[PresetItem] = []
    updated_at: int = 0


class DayPlanItem(Record):
    id: str
    kind: ItemKind
    text: str
    time: Optional[str] = None
    completed: bool = False
    source: ItemSource = "manual"
    preset_id: Optional[str] = None
    preset_item_id: Optional[str] = None
    user_edited: bool = False
    created_at: int = 0

    @model_validator(mode="before")
    @classmethod
    def _manual_items_have_no_preset_link(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("source", "manual") == "manual":
            data = dict(data)
            for key in ("presetId", "preset_id", "presetItemId", "preset_item_id"):
                if key in data:
                    data[key] = None
        return data


class DayPlan(Record):
    date: str
    active_preset_id: Optional[str] = None
    preset_updated_at: Optional[int] = None
    items: list[DayPlanItem] = []
    archived: list[DayPlanItem] = []
    is_sealed: bool = False

    @classmethod
    def empty(cls, date: str) -> "DayPlan":
        return cls(date=date)


class DaySummary(Record):
    date: str
    operator_pct: int = 0
    operator_total: int = 0
    operator_done: int = 0
    is_sealed: bool = False
    sealed_at: Optional[int] = None
    total_score_pct: int = 0
    habits_pct: int = 0
    tasks_pct_capped: int = 0
    habits_total: int = 0
    habits_done: int = 0
    tasks_total: int = 0
    tasks_done: int = 0
    status: DayStatus = "failed"
    xp_earned: int = 0


class UserProgress(Record):
    xp: int = 0
    rank_key: str = "recruit"
    xp_to_next: int = 0
    best_streak: int = 0
    current_streak: int = 0
    last_sealed_date: Optional[str] = None
    updated_at: int = 0
    active_preset_id: Optional[str] = None


class JournalEntry(Record):
    id: str
    date: str
    content: str = ""
    created_at: int = 0
    updated_at: int = 0


class Goal(Record):
    id: str
    text: str
    tag: Optional[str] = None
    done: bool = False
    done_at: Optional[int] = None
    created_at: int = 0
    updated_at: int = 0


class Transaction(Record):
    id: str
    kind: TransactionKind
    amount: float
    currency: str = "GBP"
    category: str = ""
    note: Optional[str] = None
    date: str
    created_at: int = 0
    updated_at: int = 0


def sort_transactions(items: list[Transaction]) -> list[Transaction]:
    """Newest date first; within a date, most recently updated first."""
    return sorted(items, key=lambda t: (t.date, t.updated_at), reverse=True)
