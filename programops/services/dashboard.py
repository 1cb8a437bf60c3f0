"""Service for the operator dashboard summaries."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

from programops.domain.models import (
    Application,
    ApplicationStatus,
    Schedule,
    Settlement,
    SettlementStatus,
)
from programops.services.conflicts import find_conflicts

_PERIOD_MONTH = re.compile(r"^\d{4}-\d{2}$")

SETTLEMENT_APPROVAL_PENDING = {SettlementStatus.CALCULATED, SettlementStatus.APPROVED}
APPLICATION_REVIEW_PENDING = {ApplicationStatus.SUBMITTED, ApplicationStatus.REVIEWING}


class PendingActions(BaseModel):
    settlement_approval_pending: int
    application_review_pending: int
    schedule_conflict_count: int


class MonthlySettlementSummary(BaseModel):
    month: str
    total_amount: int
    previous_total_amount: int
    change_rate: float
    status_counts: dict[str, int] = Field(default_factory=dict)


def pending_actions(
    settlements: Iterable[Settlement],
    applications: Iterable[Application],
    schedules: Iterable[Schedule],
) -> PendingActions:
    return PendingActions(
        settlement_approval_pending=sum(
            1 for s in settlements if s.status in SETTLEMENT_APPROVAL_PENDING
        ),
        application_review_pending=sum(
            1 for a in applications if a.status in APPLICATION_REVIEW_PENDING
        ),
        schedule_conflict_count=len(find_conflicts(schedules)),
    )


def settlement_month(settlement: Settlement) -> str:
    """Month a settlement belongs to: its YYYY-MM period, else its creation month."""
    if _PERIOD_MONTH.match(settlement.period):
        return settlement.period
    return settlement.created_at.strftime("%Y-%m")


def monthly_settlement_summary(
    settlements: Iterable[Settlement], today: date
) -> MonthlySettlementSummary:
    current = today.strftime("%Y-%m")
    previous = (today - relativedelta(months=1)).strftime("%Y-%m")

    this_month: list[Settlement] = []
    previous_total = 0
    for settlement in settlements:
        month = settlement_month(settlement)
        if month == current:
            this_month.append(settlement)
        elif month == previous:
            previous_total += settlement.total_amount

    total = sum(s.total_amount for s in this_month)
    if previous_total > 0:
        change_rate = (total - previous_total) / previous_total * 100
    else:
        change_rate = 100.0 if total > 0 else 0.0

    counts = {str(status): 0 for status in SettlementStatus}
    for settlement in this_month:
        counts[str(settlement.status)] += 1

    return MonthlySettlementSummary(
        month=current,
        total_amount=total,
        previous_total_amount=previous_total,
        change_rate=change_rate,
        status_counts=counts,
    )
