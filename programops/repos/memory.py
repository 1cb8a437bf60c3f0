"""In-memory repositories standing in for the operator's record store."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Generic, TypeVar

from programops.domain.models import (
    Application,
    ApplicationSubjectType,
    ApprovalHistoryEntry,
    Instructor,
    Program,
    ProgramType,
    Schedule,
    Settlement,
    SettlementCalculationRule,
    SettlementItem,
    SettlementItemType,
    SettlementStatus,
    WorkflowKind,
)
from programops.exceptions import ConcurrentModificationError, NotFoundError

logger = logging.getLogger(__name__)

Versioned = TypeVar("Versioned", Application, Settlement)


class ScheduleRepository:
    """Dict-backed store for Schedule instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Schedule] = {}

    def add(self, schedule: Schedule) -> None:
        self._store[schedule.id] = schedule

    def get(self, schedule_id: str) -> Schedule | None:
        return self._store.get(schedule_id)

    def list_all(self) -> list[Schedule]:
        return list(self._store.values())

    def list_between(self, start: date | None = None, end: date | None = None) -> list[Schedule]:
        """Schedules dated within [start, end]; a missing bound is open."""
        return [
            s
            for s in self._store.values()
            if (start is None or start <= s.date) and (end is None or s.date <= end)
        ]

    def update(self, schedule: Schedule) -> None:
        if schedule.id not in self._store:
            raise NotFoundError(f"Schedule not found: {schedule.id}")
        self._store[schedule.id] = schedule

    def delete(self, schedule_id: str) -> None:
        if self._store.pop(schedule_id, None) is None:
            raise NotFoundError(f"Schedule not found: {schedule_id}")


class _VersionedRepository(Generic[Versioned]):
    """Dict-backed store whose writes are checked against the stored version."""

    label = "Record"

    def __init__(self) -> None:
        self._store: dict[str, Versioned] = {}
        self._lock = threading.Lock()

    def add(self, record: Versioned) -> None:
        self._store[record.id] = record

    def get(self, record_id: str) -> Versioned | None:
        return self._store.get(record_id)

    def require(self, record_id: str) -> Versioned:
        record = self._store.get(record_id)
        if record is None:
            raise NotFoundError(f"{self.label} not found: {record_id}")
        return record

    def list_all(self) -> list[Versioned]:
        return list(self._store.values())

    def update(self, record: Versioned, expected_version: int) -> None:
        """Replace the stored record if it is still at *expected_version*.

        *record* is the new state (normally expected_version + 1).
        """
        with self._lock:
            stored = self.require(record.id)
            if stored.version != expected_version:
                logger.warning(
                    "Stale write to %s %s: expected version %d, stored %d",
                    self.label,
                    record.id,
                    expected_version,
                    stored.version,
                )
                raise ConcurrentModificationError(
                    f"{self.label} {record.id} is at version {stored.version}, "
                    f"not {expected_version}"
                )
            self._store[record.id] = record

    def delete(self, record_id: str) -> None:
        if self._store.pop(record_id, None) is None:
            raise NotFoundError(f"{self.label} not found: {record_id}")


class ApplicationRepository(_VersionedRepository[Application]):
    label = "Application"


class SettlementRepository(_VersionedRepository[Settlement]):
    label = "Settlement"


class RuleRepository:
    """Dict-backed store for validated calculation rules."""

    def __init__(self) -> None:
        self._store: dict[str, SettlementCalculationRule] = {}

    def add(self, rule: SettlementCalculationRule) -> None:
        self._store[rule.id] = rule

    def get(self, rule_id: str) -> SettlementCalculationRule | None:
        return self._store.get(rule_id)

    def list_all(self) -> list[SettlementCalculationRule]:
        return list(self._store.values())

    def for_program(self, program_id: str | None) -> SettlementCalculationRule | None:
        """Enabled rule for a program, falling back to the first global rule."""
        enabled = [r for r in self._store.values() if r.enabled]
        for rule in enabled:
            if program_id is not None and rule.program_id == program_id:
                return rule
        for rule in enabled:
            if rule.program_id is None:
                return rule
        return None


class HistoryRepository:
    """List-backed store for ApprovalHistoryEntry instances."""

    def __init__(self) -> None:
        self._entries: list[ApprovalHistoryEntry] = []

    def add(self, entry: ApprovalHistoryEntry) -> None:
        self._entries.append(entry)

    def list_for(self, kind: WorkflowKind, entity_id: str) -> list[ApprovalHistoryEntry]:
        return sorted(
            [e for e in self._entries if e.entity_kind == kind and e.entity_id == entity_id],
            key=lambda e: e.created_at,
        )


class ConflictWarningRepository:
    """Latest conflict warning per schedule id."""

    def __init__(self) -> None:
        self._warnings: dict[str, list[str]] = {}

    def record(self, schedule_id: str, conflicting_ids: list[str]) -> None:
        self._warnings[schedule_id] = sorted(conflicting_ids)

    def clear(self, schedule_id: str) -> None:
        """Forget warnings for *schedule_id*, including mentions in other warnings."""
        self._warnings.pop(schedule_id, None)
        for other_id, ids in list(self._warnings.items()):
            if schedule_id in ids:
                remaining = [i for i in ids if i != schedule_id]
                if remaining:
                    self._warnings[other_id] = remaining
                else:
                    del self._warnings[other_id]

    def get(self, schedule_id: str) -> list[str]:
        return self._warnings.get(schedule_id, [])

    def list_all(self) -> dict[str, list[str]]:
        return dict(self._warnings)


class DirectoryRepository:
    """Read-mostly store for instructors and programs."""

    def __init__(self) -> None:
        self.instructors: dict[str, Instructor] = {}
        self.programs: dict[str, Program] = {}

    def add_instructor(self, instructor: Instructor) -> None:
        self.instructors[instructor.id] = instructor

    def add_program(self, program: Program) -> None:
        self.programs[program.id] = program


# ---------------------------------------------------------------------------
# Seed data: a small demo roster with one double-booked instructor
# ---------------------------------------------------------------------------


def seed_demo_data(
    directory: DirectoryRepository,
    schedules: ScheduleRepository,
    applications: ApplicationRepository,
    settlements: SettlementRepository,
) -> None:
    today = datetime.now(timezone.utc).date()

    coding = Program(
        title="Coding camp",
        description="python robotics",
        type=ProgramType.OFFLINE,
        format="camp",
    )
    webinar = Program(title="AI webinar", description="ai", type=ProgramType.ONLINE)
    directory.add_program(coding)
    directory.add_program(webinar)

    kim = Instructor(
        name="Kim Minji",
        specialty=["Python", "Robotics"],
        region="Seoul",
        rating=4.6,
        experience_years=7,
    )
    lee = Instructor(
        name="Lee Junho",
        specialty=["AI"],
        region="Busan",
        rating=4.1,
        experience_years=12,
        available_time="weekday evenings",
    )
    directory.add_instructor(kim)
    directory.add_instructor(lee)

    session_day = today + timedelta(days=3)
    schedules.add(
        Schedule(
            program_id=coding.id,
            title="Coding camp day 1",
            date=session_day,
            start_time=time(9, 0),
            end_time=time(11, 0),
            instructor_id=kim.id,
            location="Hanbit Middle School",
        )
    )
    schedules.add(
        Schedule(
            program_id=webinar.id,
            title="AI webinar",
            date=session_day,
            start_time=time(10, 0),
            end_time=time(12, 0),
            instructor_id=kim.id,
            online_link="https://meet.example.org/ai",
        )
    )
    schedules.add(
        Schedule(
            program_id=coding.id,
            title="Coding camp day 2",
            date=session_day + timedelta(days=1),
            start_time=time(9, 0),
            end_time=time(11, 0),
        )
    )

    applications.add(
        Application(
            program_id=coding.id,
            subject_type=ApplicationSubjectType.SCHOOL,
            subject_id="school-hanbit",
        )
    )

    settlements.add(
        Settlement(
            program_id=coding.id,
            instructor_id=kim.id,
            period=today.strftime("%Y-%m"),
            items=[
                SettlementItem(
                    type=SettlementItemType.INSTRUCTOR_FEE,
                    description="Instructor fee",
                    amount=200000,
                )
            ],
            status=SettlementStatus.CALCULATED,
        )
    )
    logger.info("Seeded demo data")
