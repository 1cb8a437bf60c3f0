"""FastAPI application — entry point for the program operations service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from programops.config import DEFAULT_RULE, load_rules, load_settings, parse_rules
from programops.domain import workflow
from programops.domain.bus import EventBus
from programops.domain.events import ScheduleSaved, StatusChanged
from programops.domain.handlers import HandlerRegistry
from programops.domain.models import (
    Application,
    ApplicationCreate,
    ApprovalHistoryEntry,
    CalculationRequest,
    Schedule,
    ScheduleInput,
    ScheduleWriteResponse,
    Settlement,
    SettlementCalculation,
    SettlementCalculationRule,
    SettlementCreate,
    TransitionOptions,
    TransitionRequest,
    WorkflowKind,
)
from programops.exceptions import NotFoundError, ProgramOpsError, status_code_for
from programops.logging_config import configure_logging
from programops.repos.memory import (
    ApplicationRepository,
    ConflictWarningRepository,
    DirectoryRepository,
    HistoryRepository,
    RuleRepository,
    ScheduleRepository,
    SettlementRepository,
    seed_demo_data,
)
from programops.services.candidates import suggest_candidates
from programops.services.conflicts import (
    find_conflicts,
    find_conflicts_for,
    group_conflicts_by_date,
)
from programops.services.dashboard import (
    MonthlySettlementSummary,
    PendingActions,
    monthly_settlement_summary,
    pending_actions,
)
from programops.services.settlement_calculator import calculate
from programops.services.transitions import (
    advance,
    transition_application,
    transition_settlement,
)

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Program Operations Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
schedule_repo = ScheduleRepository()
application_repo = ApplicationRepository()
settlement_repo = SettlementRepository()
rule_repo = RuleRepository()
history_repo = HistoryRepository()
warning_repo = ConflictWarningRepository()
directory_repo = DirectoryRepository()

handler_registry = HandlerRegistry(
    bus=event_bus,
    schedule_repo=schedule_repo,
    history_repo=history_repo,
    warning_repo=warning_repo,
)

# Rules are validated on load; an invalid rules file stops startup
for _rule in load_rules(settings.rules_file) if settings.rules_file else [DEFAULT_RULE]:
    rule_repo.add(_rule)

if settings.seed_demo_data:
    seed_demo_data(directory_repo, schedule_repo, application_repo, settlement_repo)


@app.exception_handler(ProgramOpsError)
def _programops_error(request: Request, exc: ProgramOpsError) -> JSONResponse:
    return JSONResponse(status_code=status_code_for(exc), content={"detail": str(exc)})


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Schedules ─────────────────────────────────────────────────────────


@app.get("/schedules", response_model=list[Schedule])
def list_schedules(start: date | None = None, end: date | None = None) -> list[Schedule]:
    """Return all schedules, optionally limited to a date range.

    Either bound may be given alone.
    """
    return schedule_repo.list_between(start, end)


@app.get("/schedules/conflicts")
def list_schedule_conflicts() -> dict[str, Any]:
    """Return every double-booked schedule id, overall and per date."""
    schedules = schedule_repo.list_all()
    by_date = group_conflicts_by_date(schedules)
    return {
        "conflicting_ids": sorted(find_conflicts(schedules)),
        "by_date": {day.isoformat(): sorted(ids) for day, ids in sorted(by_date.items())},
    }


@app.get("/schedules/{schedule_id}", response_model=Schedule)
def get_schedule(schedule_id: str) -> Schedule:
    schedule = schedule_repo.get(schedule_id)
    if schedule is None:
        raise NotFoundError(f"Schedule not found: {schedule_id}")
    return schedule


@app.post("/schedules", response_model=ScheduleWriteResponse, status_code=201)
def create_schedule(payload: ScheduleInput) -> ScheduleWriteResponse:
    """Store a schedule; overlaps are returned as warnings, not errors."""
    conflicts = find_conflicts_for(payload, schedule_repo.list_all())
    schedule = Schedule(**payload.model_dump())
    schedule_repo.add(schedule)
    event_bus.publish(ScheduleSaved(schedule_id=schedule.id))
    return ScheduleWriteResponse(schedule=schedule, conflicts=conflicts)


@app.put("/schedules/{schedule_id}", response_model=ScheduleWriteResponse)
def update_schedule(schedule_id: str, payload: ScheduleInput) -> ScheduleWriteResponse:
    existing = get_schedule(schedule_id)
    conflicts = find_conflicts_for(payload, schedule_repo.list_all(), exclude_id=schedule_id)
    schedule = existing.model_copy(update={**payload.model_dump(), "updated_at": _now()})
    schedule_repo.update(schedule)
    event_bus.publish(ScheduleSaved(schedule_id=schedule.id))
    return ScheduleWriteResponse(schedule=schedule, conflicts=conflicts)


@app.delete("/schedules/{schedule_id}", status_code=204)
def delete_schedule(schedule_id: str) -> None:
    schedule_repo.delete(schedule_id)
    warning_repo.clear(schedule_id)


# ── Applications ──────────────────────────────────────────────────────


def _options(kind: WorkflowKind, status: str) -> TransitionOptions:
    next_auto = workflow.auto_advance(kind, status)
    return TransitionOptions(
        current=str(status),
        next_statuses=[str(s) for s in workflow.next_statuses(kind, status)],
        auto_advance=str(next_auto) if next_auto is not None else None,
        is_terminal=workflow.is_terminal(kind, status),
    )


@app.get("/applications", response_model=list[Application])
def list_applications() -> list[Application]:
    return application_repo.list_all()


@app.post("/applications", response_model=Application, status_code=201)
def create_application(payload: ApplicationCreate) -> Application:
    application = Application(**payload.model_dump())
    application_repo.add(application)
    return application


@app.get("/applications/{application_id}", response_model=Application)
def get_application(application_id: str) -> Application:
    return application_repo.require(application_id)


@app.get("/applications/{application_id}/transitions", response_model=TransitionOptions)
def application_transitions(application_id: str) -> TransitionOptions:
    """Statuses the application can move to, for rendering action buttons."""
    application = application_repo.require(application_id)
    return _options(WorkflowKind.APPLICATION, application.status)


@app.post("/applications/{application_id}/transition", response_model=Application)
def transition_application_status(application_id: str, body: TransitionRequest) -> Application:
    application = application_repo.require(application_id)
    updated, entry = transition_application(
        application, body.target, _now(), reason=body.reason, actor=body.actor
    )
    expected = body.expected_version if body.expected_version is not None else application.version
    application_repo.update(updated, expected_version=expected)
    event_bus.publish(StatusChanged(entry=entry))
    return updated


@app.post("/applications/{application_id}/advance", response_model=Application)
def advance_application(application_id: str) -> Application:
    application = application_repo.require(application_id)
    updated, entry = advance(WorkflowKind.APPLICATION, application, _now())
    application_repo.update(updated, expected_version=application.version)
    event_bus.publish(StatusChanged(entry=entry))
    return updated


@app.get("/applications/{application_id}/history", response_model=list[ApprovalHistoryEntry])
def application_history(application_id: str) -> list[ApprovalHistoryEntry]:
    application_repo.require(application_id)
    return history_repo.list_for(WorkflowKind.APPLICATION, application_id)


# ── Settlements ───────────────────────────────────────────────────────


@app.get("/settlements", response_model=list[Settlement])
def list_settlements() -> list[Settlement]:
    return settlement_repo.list_all()


@app.post("/settlements", response_model=Settlement, status_code=201)
def create_settlement(payload: SettlementCreate) -> Settlement:
    settlement = Settlement(**payload.model_dump())
    settlement_repo.add(settlement)
    return settlement


@app.post("/settlements/calculate", response_model=SettlementCalculation)
def calculate_settlement(body: CalculationRequest) -> SettlementCalculation:
    """Preview settlement line items for a rule (default rule when omitted)."""
    if body.rule_id is not None:
        rule = rule_repo.get(body.rule_id)
        if rule is None:
            raise NotFoundError(f"Rule not found: {body.rule_id}")
    else:
        rule = rule_repo.for_program(None)
        if rule is None:
            raise NotFoundError("No enabled settlement rule configured")
    return calculate(rule, body.input)


@app.get("/settlements/{settlement_id}", response_model=Settlement)
def get_settlement(settlement_id: str) -> Settlement:
    return settlement_repo.require(settlement_id)


@app.get("/settlements/{settlement_id}/transitions", response_model=TransitionOptions)
def settlement_transitions(settlement_id: str) -> TransitionOptions:
    settlement = settlement_repo.require(settlement_id)
    return _options(WorkflowKind.SETTLEMENT, settlement.status)


@app.post("/settlements/{settlement_id}/transition", response_model=Settlement)
def transition_settlement_status(settlement_id: str, body: TransitionRequest) -> Settlement:
    settlement = settlement_repo.require(settlement_id)
    updated, entry = transition_settlement(
        settlement, body.target, _now(), reason=body.reason, actor=body.actor
    )
    expected = body.expected_version if body.expected_version is not None else settlement.version
    settlement_repo.update(updated, expected_version=expected)
    event_bus.publish(StatusChanged(entry=entry))
    return updated


@app.post("/settlements/{settlement_id}/advance", response_model=Settlement)
def advance_settlement(settlement_id: str) -> Settlement:
    settlement = settlement_repo.require(settlement_id)
    updated, entry = advance(WorkflowKind.SETTLEMENT, settlement, _now())
    settlement_repo.update(updated, expected_version=settlement.version)
    event_bus.publish(StatusChanged(entry=entry))
    return updated


@app.get("/settlements/{settlement_id}/history", response_model=list[ApprovalHistoryEntry])
def settlement_history(settlement_id: str) -> list[ApprovalHistoryEntry]:
    settlement_repo.require(settlement_id)
    return history_repo.list_for(WorkflowKind.SETTLEMENT, settlement_id)


# ── Calculation rules ─────────────────────────────────────────────────


@app.get("/settlement-rules", response_model=list[SettlementCalculationRule])
def list_rules() -> list[SettlementCalculationRule]:
    return rule_repo.list_all()


@app.post("/settlement-rules", response_model=SettlementCalculationRule, status_code=201)
def create_rule(payload: dict[str, Any]) -> SettlementCalculationRule:
    """Validate and store a rule; incomplete rules are rejected with 422."""
    (rule,) = parse_rules(payload)
    rule_repo.add(rule)
    logger.info("Stored settlement rule %s (%s)", rule.id, rule.name)
    return rule


# ── Dashboard and matching ────────────────────────────────────────────


@app.get("/dashboard/pending-actions", response_model=PendingActions)
def dashboard_pending_actions() -> PendingActions:
    return pending_actions(
        settlement_repo.list_all(),
        application_repo.list_all(),
        schedule_repo.list_all(),
    )


@app.get("/dashboard/monthly-settlements", response_model=MonthlySettlementSummary)
def dashboard_monthly_settlements(today: date | None = None) -> MonthlySettlementSummary:
    return monthly_settlement_summary(settlement_repo.list_all(), today or _now().date())


@app.get("/programs/{program_id}/candidates")
def program_candidates(program_id: str) -> list[dict[str, Any]]:
    """Rank instructors for a program, skipping anyone double-booked for its sessions."""
    program = directory_repo.programs.get(program_id)
    if program is None:
        raise NotFoundError(f"Program not found: {program_id}")
    schedules = schedule_repo.list_all()
    sessions = [s for s in schedules if s.program_id == program_id]
    assigned = {s.instructor_id for s in sessions if s.instructor_id}
    candidates = suggest_candidates(
        program,
        directory_repo.instructors.values(),
        exclude_ids=assigned,
        sessions=sessions,
        booked=[s for s in schedules if s.program_id != program_id],
    )
    return [
        {
            "instructor": c.instructor.model_dump(mode="json"),
            "score": c.score,
            "reasons": c.reasons,
        }
        for c in candidates
    ]
