"""Leaderboard ranking across all users sharing a hobby name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .schemas import HobbyRow


@dataclass(slots=True)
class RankedRow:
    user_id: str
    rank: int
    total_time: float
    hobby_name: str


def normalize_name(name: str) -> str:
    return name.lower()


def leaderboard(rows: Iterable[HobbyRow], hobby_name: str) -> List[RankedRow]:
    """Rank rows for ``hobby_name`` by total time, highest first.

    Ties share a rank and the next distinct total continues at its position,
    so totals 300, 300, 100 rank 1, 1, 3.
    """
    wanted = normalize_name(hobby_name)
    matching = sorted(
        (row for row in rows if normalize_name(row.name) == wanted),
        key=lambda row: row.total_time,
        reverse=True,
    )
    ranked: List[RankedRow] = []
    rank = 1
    for index, row in enumerate(matching):
        if index > 0 and row.total_time < matching[index - 1].total_time:
            rank = index + 1
        ranked.append(RankedRow(user_id=row.user_id or "", rank=rank,
                                total_time=row.total_time, hobby_name=row.name))
    return ranked


def competition_rank(rows: Iterable[HobbyRow], hobby_name: str, user_id: str) -> Optional[int]:
    """Rank of ``user_id`` for ``hobby_name``; ``None`` if the user has no such row."""
    wanted_user = user_id.lower()
    for entry in leaderboard(rows, hobby_name):
        if entry.user_id.lower() == wanted_user:
            return entry.rank
    return None


__all__ = ["RankedRow", "competition_rank", "leaderboard", "normalize_name"]
