"""Domain events emitted by scheduling and workflow changes."""

from __future__ import annotations

from pydantic import BaseModel

from programops.domain.models import ApprovalHistoryEntry


class ScheduleSaved(BaseModel):
    """Fired after a schedule is created or updated."""

    schedule_id: str


class ScheduleConflictDetected(BaseModel):
    """Fired when a saved schedule double-books its instructor."""

    schedule_id: str
    conflicting_schedule_ids: list[str]


class StatusChanged(BaseModel):
    """Fired after an application or settlement changed status."""

    entry: ApprovalHistoryEntry
