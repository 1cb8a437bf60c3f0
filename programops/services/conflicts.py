"""Service for detecting instructor double-booking between schedules."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from programops.domain.models import Schedule, ScheduleInput


def overlaps(a: Schedule | ScheduleInput, b: Schedule | ScheduleInput) -> bool:
    """Half-open overlap test on [start_time, end_time).

    Overlap rule: a.start < b.end AND a.end > b.start.
    Touching boundaries (a.end == b.start) are NOT considered conflicts.
    """
    return a.start_time < b.end_time and a.end_time > b.start_time


def _same_slot(a: Schedule | ScheduleInput, b: Schedule | ScheduleInput) -> bool:
    return (
        a.instructor_id is not None
        and a.instructor_id == b.instructor_id
        and a.date == b.date
    )


def _bucket_by_instructor_day(
    events: Iterable[Schedule],
) -> dict[tuple[str, date], list[Schedule]]:
    buckets: dict[tuple[str, date], list[Schedule]] = defaultdict(list)
    for event in events:
        # Unassigned schedules never conflict
        if event.instructor_id is None:
            continue
        buckets[(event.instructor_id, event.date)].append(event)
    return buckets


def conflict_pairs(events: Iterable[Schedule]) -> list[tuple[Schedule, Schedule]]:
    """Return every overlapping (A, B) pair once, grouped by instructor and day."""
    pairs: list[tuple[Schedule, Schedule]] = []
    for bucket in _bucket_by_instructor_day(events).values():
        ordered = sorted(bucket, key=lambda e: (e.start_time, e.end_time, e.id))
        for i, first in enumerate(ordered):
            for second in ordered[i + 1 :]:
                # Sorted by start: nothing later can overlap once this one starts after first ends
                if second.start_time >= first.end_time:
                    break
                if first.id != second.id and overlaps(first, second):
                    pairs.append((first, second))
    return pairs


def find_conflicts(events: Iterable[Schedule]) -> set[str]:
    """Return the ids of all schedules that overlap another one.

    Only schedules with the same instructor on the same date are compared.
    The result is symmetric: if A overlaps B, both ids are included.
    """
    conflicting: set[str] = set()
    for first, second in conflict_pairs(events):
        conflicting.add(first.id)
        conflicting.add(second.id)
    return conflicting


def find_conflicts_for(
    candidate: Schedule | ScheduleInput,
    events: Iterable[Schedule],
    exclude_id: str | None = None,
) -> list[Schedule]:
    """Return existing schedules that overlap *candidate*.

    *exclude_id* skips the stored version of a schedule being edited in place.
    A candidate without an instructor never conflicts.
    """
    if candidate.instructor_id is None:
        return []
    candidate_id = getattr(candidate, "id", None)
    return [
        event
        for event in events
        if event.id != exclude_id
        and event.id != candidate_id
        and _same_slot(candidate, event)
        and overlaps(candidate, event)
    ]


def group_conflicts_by_date(events: Iterable[Schedule]) -> dict[date, set[str]]:
    """Conflicting schedule ids keyed by calendar date, for calendar views."""
    grouped: dict[date, set[str]] = defaultdict(set)
    for first, second in conflict_pairs(events):
        grouped[first.date].update((first.id, second.id))
    return dict(grouped)
