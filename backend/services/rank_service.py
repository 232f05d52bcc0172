from __future__ import annotations

import math
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class RankDefinition:
    key: str
    name: str
    threshold: int


@dataclass(frozen=True)
class RankState:
    rank_key: str
    rank_name: str
    next_rank_name: str | None
    progress_pct: float
    current_threshold: int
    next_threshold: int | None

    def to_dict(self) -> dict:
        payload = asdict(self)
        return {
            "rankKey": payload["rank_key"],
            "rankName": payload["rank_name"],
            "nextRankName": payload["next_rank_name"],
            "progressPct": payload["progress_pct"],
            "currentThreshold": payload["current_threshold"],
            "nextThreshold": payload["next_threshold"],
        }


RANKS: tuple[RankDefinition, ...] = (
    RankDefinition("recruit", "Recruit", 0),
    RankDefinition("operator", "Operator", 100),
    RankDefinition("advanced", "Advanced", 250),
    RankDefinition("elite", "Elite", 500),
    RankDefinition("monk", "Monk", 1000),
    RankDefinition("sorcerer_supreme", "Sorcerer Supreme", 2000),
)


def _safe_xp(xp: float | int | None) -> float:
    if xp is None:
        return 0.0
    try:
        value = float(xp)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value <= 0:
        return 0.0
    return value


def compute_rank_from_xp(xp: float | int | None) -> RankState:
    safe_xp = _safe_xp(xp)
    ranks = sorted(RANKS, key=lambda r: r.threshold)

    current_index = 0
    for idx, rank in enumerate(ranks):
        if safe_xp >= rank.threshold:
            current_index = idx
        else:
            break

    current = ranks[current_index]
    nxt = ranks[current_index + 1] if current_index + 1 < len(ranks) else None
    if nxt is not None:
        span = nxt.threshold - current.threshold
        progress_pct = min(100.0, max(0.0, ((safe_xp - current.threshold) / span) * 100.0))
    else:
        progress_pct = 100.0

    return RankState(
        rank_key=current.key,
        rank_name=current.name,
        next_rank_name=nxt.name if nxt else None,
        progress_pct=round(progress_pct, 1),
        current_threshold=current.threshold,
        next_threshold=nxt.threshold if nxt else None,
    )


def xp_to_next_rank(xp: float | int | None) -> int:
    state = compute_rank_from_xp(xp)
    if state.next_threshold is None:
        return 0
    return max(int(math.ceil(state.next_threshold - _safe_xp(xp))), 0)
