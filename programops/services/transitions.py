"""Service for applying allowed status changes to applications and settlements."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TypeVar

from programops.domain.models import (
    Application,
    ApprovalHistoryEntry,
    Settlement,
    WorkflowKind,
)
from programops.domain.workflow import Status, auto_advance, plan_transition
from programops.exceptions import IllegalTransitionError, MissingReasonError

logger = logging.getLogger(__name__)

Record = TypeVar("Record", Application, Settlement)


def _apply(
    kind: WorkflowKind,
    record: Record,
    target: Status | str,
    now: datetime | None,
    reason: str | None,
    actor: str | None,
) -> tuple[Record, ApprovalHistoryEntry]:
    now = now or datetime.now(timezone.utc)
    plan = plan_transition(kind, record.status, target)
    if plan is None:
        logger.warning(
            "Rejected %s %s transition %s -> %s", kind, record.id, record.status, target
        )
        raise IllegalTransitionError(kind, str(record.status), str(target))
    if plan.requires_reason and not (reason and reason.strip()):
        raise MissingReasonError(f"A reason is required to mark {kind} {record.id} {plan.target}")

    update: dict = {
        "status": plan.target,
        "updated_at": now,
        "version": record.version + 1,
    }
    if plan.timestamp_field is not None:
        update[plan.timestamp_field] = now

    updated = record.model_copy(update=update)
    entry = ApprovalHistoryEntry(
        entity_kind=kind,
        entity_id=record.id,
        step=plan.step,
        action=plan.action,
        from_status=str(plan.current),
        to_status=str(plan.target),
        actor=actor,
        reason=reason,
        created_at=now,
    )
    logger.info("%s %s moved %s -> %s", kind, record.id, plan.current, plan.target)
    return updated, entry


def transition_application(
    application: Application,
    target: Status | str,
    now: datetime | None = None,
    reason: str | None = None,
    actor: str | None = None,
) -> tuple[Application, ApprovalHistoryEntry]:
    """Return a copy of *application* moved to *target* plus its audit entry.

    Raises IllegalTransitionError when the workflow does not allow the move
    and MissingReasonError for rejections or cancellations without a reason.
    """
    return _apply(WorkflowKind.APPLICATION, application, target, now, reason, actor)


def transition_settlement(
    settlement: Settlement,
    target: Status | str,
    now: datetime | None = None,
    reason: str | None = None,
    actor: str | None = None,
) -> tuple[Settlement, ApprovalHistoryEntry]:
    """Return a copy of *settlement* moved to *target* plus its audit entry."""
    return _apply(WorkflowKind.SETTLEMENT, settlement, target, now, reason, actor)


def advance(
    kind: WorkflowKind,
    record: Record,
    now: datetime | None = None,
    actor: str | None = None,
) -> tuple[Record, ApprovalHistoryEntry]:
    """Move *record* one step along its happy path."""
    target = auto_advance(kind, record.status)
    if target is None:
        raise IllegalTransitionError(kind, str(record.status), "<next>")
    return _apply(kind, record, target, now, None, actor)
