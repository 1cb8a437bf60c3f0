"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

import logging

from programops.domain.bus import EventBus
from programops.domain.events import (
    ScheduleConflictDetected,
    ScheduleSaved,
    StatusChanged,
)
from programops.repos.memory import (
    ConflictWarningRepository,
    HistoryRepository,
    ScheduleRepository,
)
from programops.services.conflicts import find_conflicts_for

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the repositories."""

    def __init__(
        self,
        bus: EventBus,
        schedule_repo: ScheduleRepository,
        history_repo: HistoryRepository,
        warning_repo: ConflictWarningRepository,
    ) -> None:
        self.bus = bus
        self.schedule_repo = schedule_repo
        self.history_repo = history_repo
        self.warning_repo = warning_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(ScheduleSaved, self.on_schedule_saved)
        self.bus.subscribe(ScheduleConflictDetected, self.on_conflict_detected)
        self.bus.subscribe(StatusChanged, self.on_status_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_schedule_saved(self, event: ScheduleSaved) -> None:
        stored = self.schedule_repo.get(event.schedule_id)
        if stored is None:
            return

        # Warnings from the previous version of this schedule no longer apply
        self.warning_repo.clear(stored.id)
        conflicts = find_conflicts_for(
            stored, self.schedule_repo.list_all(), exclude_id=stored.id
        )
        if not conflicts:
            return

        self.bus.publish(
            ScheduleConflictDetected(
                schedule_id=stored.id,
                conflicting_schedule_ids=[c.id for c in conflicts],
            )
        )

    def on_conflict_detected(self, event: ScheduleConflictDetected) -> None:
        # Warning only: the schedule stays saved
        logger.info(
            "Schedule %s double-books its instructor with %s",
            event.schedule_id,
            ", ".join(event.conflicting_schedule_ids),
        )
        self.warning_repo.record(event.schedule_id, event.conflicting_schedule_ids)
        for other_id in event.conflicting_schedule_ids:
            others = set(self.warning_repo.get(other_id))
            others.add(event.schedule_id)
            self.warning_repo.record(other_id, list(others))

    def on_status_changed(self, event: StatusChanged) -> None:
        self.history_repo.add(event.entry)
