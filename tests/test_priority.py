from datetime import datetime
from types import SimpleNamespace

import pytest

from clinic_agenda.services.priority import (
    clamp_priority,
    decrement,
    increment,
    priority_stats,
    sort_for_display,
)


@pytest.mark.parametrize("value, expected", [(-3, 1), (0, 1), (1, 1), (3, 3), (5, 5), (9, 5)])
def test_clamp_priority(value, expected):
    assert clamp_priority(value) == expected


def test_increment_and_decrement_stay_in_range():
    assert increment(5) == 5
    assert increment(2) == 3
    assert decrement(1) == 1
    assert decrement(4) == 3


def test_sort_for_display_priority_then_oldest():
    e = lambda i, p, minute: SimpleNamespace(id=i, priority=p, created_at=datetime(2030, 1, 1, 9, minute))
    entries = [e(1, 2, 0), e(2, 5, 30), e(3, 5, 10), e(4, 1, 0), e(5, 2, 5)]
    assert [x.id for x in sort_for_display(entries)] == [3, 2, 1, 5, 4]


def test_priority_stats_has_every_level():
    entries = [SimpleNamespace(priority=p) for p in (5, 5, 3, 1)]
    stats = priority_stats(entries)
    assert [s["priority"] for s in stats] == [5, 4, 3, 2, 1]
    assert {s["priority"]: s["count"] for s in stats} == {5: 2, 4: 0, 3: 1, 2: 0, 1: 1}
    assert stats[0]["label"] == "Urgente"
