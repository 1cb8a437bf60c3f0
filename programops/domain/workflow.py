"""Status transition rules for applications and settlements.

Each workflow kind has a closed status enumeration and an adjacency table
that covers every member of it. The functions here are pure: they take a
status and return a decision, and never touch stored records.

Application::

    submitted -> reviewing -> approved | rejected
         \\            \\
          +------------+-> cancelled

Settlement::

    pending -> calculated -> approved -> paid
         \\          \\           \\
          +----------+-----------+-> cancelled
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from programops.domain.models import (
    ApplicationStatus,
    ApprovalAction,
    ApprovalStep,
    SettlementStatus,
    WorkflowKind,
)
from programops.exceptions import InvalidStatusError

Status = ApplicationStatus | SettlementStatus

_STATUS_ENUMS: dict[WorkflowKind, type[StrEnum]] = {
    WorkflowKind.APPLICATION: ApplicationStatus,
    WorkflowKind.SETTLEMENT: SettlementStatus,
}

_TRANSITIONS: dict[WorkflowKind, dict[Status, tuple[Status, ...]]] = {
    WorkflowKind.APPLICATION: {
        ApplicationStatus.SUBMITTED: (
            ApplicationStatus.REVIEWING,
            ApplicationStatus.CANCELLED,
        ),
        ApplicationStatus.REVIEWING: (
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.CANCELLED,
        ),
        ApplicationStatus.APPROVED: (),
        ApplicationStatus.REJECTED: (),
        ApplicationStatus.CANCELLED: (),
    },
    WorkflowKind.SETTLEMENT: {
        SettlementStatus.PENDING: (
            SettlementStatus.CALCULATED,
            SettlementStatus.CANCELLED,
        ),
        SettlementStatus.CALCULATED: (
            SettlementStatus.APPROVED,
            SettlementStatus.CANCELLED,
        ),
        SettlementStatus.APPROVED: (
            SettlementStatus.PAID,
            SettlementStatus.CANCELLED,
        ),
        SettlementStatus.PAID: (),
        SettlementStatus.CANCELLED: (),
    },
}

# Happy path used by "advance" actions; authored per kind, not derived.
_AUTO_ADVANCE: dict[WorkflowKind, dict[Status, Status | None]] = {
    WorkflowKind.APPLICATION: {
        ApplicationStatus.SUBMITTED: ApplicationStatus.REVIEWING,
        ApplicationStatus.REVIEWING: ApplicationStatus.APPROVED,
        ApplicationStatus.APPROVED: None,
        ApplicationStatus.REJECTED: None,
        ApplicationStatus.CANCELLED: None,
    },
    WorkflowKind.SETTLEMENT: {
        SettlementStatus.PENDING: SettlementStatus.CALCULATED,
        SettlementStatus.CALCULATED: SettlementStatus.APPROVED,
        SettlementStatus.APPROVED: SettlementStatus.PAID,
        SettlementStatus.PAID: None,
        SettlementStatus.CANCELLED: None,
    },
}


def _check_tables() -> None:
    for kind, enum_type in _STATUS_ENUMS.items():
        members = set(enum_type)
        for name, table in (("transition", _TRANSITIONS), ("auto-advance", _AUTO_ADVANCE)):
            missing = members - set(table[kind])
            if missing:
                raise RuntimeError(
                    f"{kind} {name} table is missing {sorted(missing)}"
                )
        for source, targets in _TRANSITIONS[kind].items():
            for target in targets:
                if target not in members:
                    raise RuntimeError(f"{kind} transition {source} -> {target} leaves the workflow")


_check_tables()


def coerce_status(kind: WorkflowKind | str, status: Status | str) -> Status:
    """Return *status* as a member of *kind*'s enumeration.

    Raises InvalidStatusError for a status from another kind or an unknown value.
    """
    kind = WorkflowKind(kind)
    enum_type = _STATUS_ENUMS[kind]
    if isinstance(status, StrEnum) and not isinstance(status, enum_type):
        raise InvalidStatusError(f"{status!r} is not a {kind} status")
    try:
        return enum_type(status)
    except ValueError:
        raise InvalidStatusError(f"{status!r} is not a {kind} status") from None


def statuses(kind: WorkflowKind | str) -> list[Status]:
    return list(_STATUS_ENUMS[WorkflowKind(kind)])


def next_statuses(kind: WorkflowKind | str, current: Status | str) -> list[Status]:
    kind = WorkflowKind(kind)
    return list(_TRANSITIONS[kind][coerce_status(kind, current)])


def is_terminal(kind: WorkflowKind | str, status: Status | str) -> bool:
    return not next_statuses(kind, status)


def can_transition(
    kind: WorkflowKind | str, current: Status | str, target: Status | str
) -> bool:
    """Return True when moving from *current* to *target* is allowed.

    Self-transitions and moves out of terminal statuses are never allowed.
    """
    kind = WorkflowKind(kind)
    current = coerce_status(kind, current)
    target = coerce_status(kind, target)
    if current == target:
        return False
    allowed = _TRANSITIONS[kind][current]
    if not allowed:
        return False
    return target in allowed


def auto_advance(kind: WorkflowKind | str, current: Status | str) -> Status | None:
    kind = WorkflowKind(kind)
    return _AUTO_ADVANCE[kind][coerce_status(kind, current)]


# ---------------------------------------------------------------------------
# Transition side effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionPlan:
    """What has to accompany an allowed status change.

    ``timestamp_field`` names the milestone field the caller stamps (if any);
    ``requires_reason`` is set for rejections and cancellations.
    """

    kind: WorkflowKind
    current: Status
    target: Status
    step: ApprovalStep
    action: ApprovalAction
    timestamp_field: str | None
    requires_reason: bool


_APPLICATION_EFFECTS: dict[ApplicationStatus, tuple[ApprovalStep, ApprovalAction, str | None]] = {
    ApplicationStatus.REVIEWING: (ApprovalStep.REVIEW, ApprovalAction.REVIEWED, "reviewed_at"),
    ApplicationStatus.APPROVED: (ApprovalStep.APPROVAL, ApprovalAction.APPROVED, "reviewed_at"),
    ApplicationStatus.REJECTED: (ApprovalStep.APPROVAL, ApprovalAction.REJECTED, "reviewed_at"),
    ApplicationStatus.CANCELLED: (ApprovalStep.APPROVAL, ApprovalAction.CANCELLED, "reviewed_at"),
}

_SETTLEMENT_EFFECTS: dict[SettlementStatus, tuple[ApprovalStep, ApprovalAction, str | None]] = {
    SettlementStatus.CALCULATED: (ApprovalStep.REVIEW, ApprovalAction.REVIEWED, "calculated_at"),
    SettlementStatus.APPROVED: (ApprovalStep.APPROVAL, ApprovalAction.APPROVED, "approved_at"),
    SettlementStatus.PAID: (ApprovalStep.PAYMENT, ApprovalAction.PAID, "paid_at"),
    SettlementStatus.CANCELLED: (ApprovalStep.APPROVAL, ApprovalAction.CANCELLED, "cancelled_at"),
}

_REASON_REQUIRED = {ApprovalAction.REJECTED, ApprovalAction.CANCELLED}


def plan_transition(
    kind: WorkflowKind | str, current: Status | str, target: Status | str
) -> TransitionPlan | None:
    """Describe the side effects of moving to *target*, or None if not allowed."""
    kind = WorkflowKind(kind)
    current = coerce_status(kind, current)
    target = coerce_status(kind, target)
    if not can_transition(kind, current, target):
        return None
    effects = _APPLICATION_EFFECTS if kind == WorkflowKind.APPLICATION else _SETTLEMENT_EFFECTS
    step, action, timestamp_field = effects[target]
    return TransitionPlan(
        kind=kind,
        current=current,
        target=target,
        step=step,
        action=action,
        timestamp_field=timestamp_field,
        requires_reason=action in _REASON_REQUIRED,
    )
