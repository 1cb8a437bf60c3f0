"""Tests for the application and settlement status state machines."""

from __future__ import annotations

import pytest

from programops.domain.models import (
    ApplicationStatus,
    ApprovalAction,
    ApprovalStep,
    SettlementStatus,
    WorkflowKind,
)
from programops.domain.workflow import (
    auto_advance,
    can_transition,
    coerce_status,
    is_terminal,
    next_statuses,
    plan_transition,
    statuses,
)
from programops.exceptions import InvalidStatusError

KINDS = [WorkflowKind.APPLICATION, WorkflowKind.SETTLEMENT]


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def test_application_must_pass_through_reviewing():
    assert can_transition("application", "submitted", "approved") is False
    assert can_transition("application", "submitted", "reviewing") is True


def test_application_review_outcomes():
    assert next_statuses(WorkflowKind.APPLICATION, ApplicationStatus.REVIEWING) == [
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.CANCELLED,
    ]


def test_application_terminal_statuses():
    terminal = [s for s in statuses("application") if is_terminal("application", s)]
    assert terminal == [
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.CANCELLED,
    ]


def test_application_auto_advance():
    assert auto_advance("application", "submitted") == ApplicationStatus.REVIEWING
    assert auto_advance("application", "reviewing") == ApplicationStatus.APPROVED
    assert auto_advance("application", "rejected") is None


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


def test_settlement_paid_is_terminal():
    for target in statuses("settlement"):
        assert can_transition("settlement", SettlementStatus.PAID, target) is False


def test_settlement_cancel_reachable_until_paid():
    for current in ("pending", "calculated", "approved"):
        assert can_transition("settlement", current, "cancelled") is True
    assert can_transition("settlement", "paid", "cancelled") is False


def test_settlement_happy_path():
    path = [SettlementStatus.PENDING]
    while (nxt := auto_advance("settlement", path[-1])) is not None:
        path.append(nxt)
    assert path == [
        SettlementStatus.PENDING,
        SettlementStatus.CALCULATED,
        SettlementStatus.APPROVED,
        SettlementStatus.PAID,
    ]


def test_settlement_cannot_skip_steps():
    assert can_transition("settlement", "pending", "approved") is False
    assert can_transition("settlement", "calculated", "paid") is False


# ---------------------------------------------------------------------------
# Properties over every kind
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("kind", KINDS)
def test_self_transition_never_allowed(kind):
    for status in statuses(kind):
        assert can_transition(kind, status, status) is False


@pytest.mark.parametrize("kind", KINDS)
def test_terminal_closure(kind):
    for current in statuses(kind):
        if next_statuses(kind, current):
            continue
        assert is_terminal(kind, current)
        assert auto_advance(kind, current) is None
        for target in statuses(kind):
            assert can_transition(kind, current, target) is False


@pytest.mark.parametrize("kind", KINDS)
def test_auto_advance_is_a_legal_transition(kind):
    for current in statuses(kind):
        target = auto_advance(kind, current)
        if target is not None:
            assert can_transition(kind, current, target)


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


def test_unknown_status_fails_fast():
    with pytest.raises(InvalidStatusError):
        can_transition("application", "submitted", "paid")
    with pytest.raises(InvalidStatusError):
        next_statuses("settlement", "reviewing")


def test_status_from_other_kind_rejected():
    """Enum members are checked against the kind even when the value matches."""
    with pytest.raises(InvalidStatusError):
        coerce_status(WorkflowKind.SETTLEMENT, ApplicationStatus.CANCELLED)
    assert coerce_status(WorkflowKind.SETTLEMENT, "cancelled") is SettlementStatus.CANCELLED


# ---------------------------------------------------------------------------
# plan_transition
# ---------------------------------------------------------------------------


def test_plan_settlement_payment():
    plan = plan_transition("settlement", "approved", "paid")
    assert plan is not None
    assert plan.timestamp_field == "paid_at"
    assert plan.step == ApprovalStep.PAYMENT
    assert plan.action == ApprovalAction.PAID
    assert plan.requires_reason is False


def test_plan_rejection_requires_reason():
    plan = plan_transition("application", "reviewing", "rejected")
    assert plan is not None
    assert plan.requires_reason is True
    assert plan.timestamp_field == "reviewed_at"


def test_plan_illegal_transition_is_none():
    assert plan_transition("application", "approved", "reviewing") is None


@pytest.mark.parametrize("kind", KINDS)
def test_every_allowed_move_has_a_plan(kind):
    for current in statuses(kind):
        for target in next_statuses(kind, current):
            assert plan_transition(kind, current, target) is not None


@pytest.mark.parametrize(
    "kind, initial",
    [
        (WorkflowKind.APPLICATION, ApplicationStatus.SUBMITTED),
        (WorkflowKind.SETTLEMENT, SettlementStatus.PENDING),
    ],
)
def test_initial_status_is_never_a_target(kind, initial):
    assert all(initial not in next_statuses(kind, s) for s in statuses(kind))
