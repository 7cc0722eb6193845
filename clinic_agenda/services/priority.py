# clinic_agenda/services/priority.py
from __future__ import annotations
from typing import Iterable, Sequence, TypeVar

PRIORITY_MIN = 1
PRIORITY_MAX = 5

PRIORITY_LABELS = {
    5: "Urgente",
    4: "Alta",
    3: "Média",
    2: "Baixa",
    1: "Muito Baixa",
}

T = TypeVar("T")


def clamp_priority(value: int) -> int:
    return max(PRIORITY_MIN, min(PRIORITY_MAX, int(value)))


def increment(priority: int) -> int:
    return clamp_priority(priority + 1)


def decrement(priority: int) -> int:
    return clamp_priority(priority - 1)


def sort_for_display(entries: Iterable[T]) -> list[T]:
    """Prioridad descendente; empate → el más antiguo primero (orden estable)."""
    return sorted(entries, key=lambda e: (-e.priority, e.created_at))


def priority_stats(entries: Sequence) -> list[dict]:
    counts: dict[int, int] = {}
    for e in entries:
        counts[e.priority] = counts.get(e.priority, 0) + 1
    return [
        {"priority": p, "count": counts.get(p, 0), "label": PRIORITY_LABELS[p]}
        for p in range(PRIORITY_MAX, PRIORITY_MIN - 1, -1)
    ]
