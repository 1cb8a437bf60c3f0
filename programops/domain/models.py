"""Domain models for instructor scheduling, applications and settlements."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from programops.exceptions import LockedLineItemError


class WorkflowKind(StrEnum):
    APPLICATION = "application"
    SETTLEMENT = "settlement"


class ApplicationStatus(StrEnum):
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class SettlementStatus(StrEnum):
    PENDING = "pending"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class ApplicationSubjectType(StrEnum):
    SCHOOL = "school"
    STUDENT = "student"
    INSTRUCTOR = "instructor"


class ProgramType(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class SettlementItemType(StrEnum):
    INSTRUCTOR_FEE = "instructor_fee"
    TRANSPORTATION = "transportation"
    ACCOMMODATION = "accommodation"
    OTHER = "other"


class ApprovalStep(StrEnum):
    PENDING = "pending"
    REVIEW = "review"
    APPROVAL = "approval"
    PAYMENT = "payment"


class ApprovalAction(StrEnum):
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"


class TransportationRuleType(StrEnum):
    DISTANCE = "distance"
    FIXED = "fixed"
    NONE = "none"


class AccommodationRuleType(StrEnum):
    ACTUAL = "actual"
    FIXED = "fixed"
    NONE = "none"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Distances and per-km rates are bounded so a distance amount fits a whole
# currency unit at decimal precision.
MAX_DISTANCE_KM = 100_000
MAX_RATE_PER_KM = 1_000_000_000


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class Schedule(BaseModel):
    """One session of a program on a single calendar day."""

    id: str = Field(default_factory=_new_id)
    program_id: str | None = None
    title: str = ""
    date: date
    start_time: time
    end_time: time
    instructor_id: str | None = None
    location: str | None = None
    online_link: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _end_after_start(self) -> Schedule:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Instructor(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    specialty: list[str] = Field(default_factory=list)
    region: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    experience_years: int | None = Field(default=None, ge=0)
    available_time: str | None = None


class Program(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str | None = None
    type: ProgramType = ProgramType.OFFLINE
    format: str | None = None


# ---------------------------------------------------------------------------
# Workflow entities
# ---------------------------------------------------------------------------


class Application(BaseModel):
    id: str = Field(default_factory=_new_id)
    program_id: str
    subject_type: ApplicationSubjectType
    subject_id: str
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    notes: str | None = None
    submitted_at: datetime = Field(default_factory=_utcnow)
    reviewed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 1


class SettlementItem(BaseModel):
    type: SettlementItemType
    description: str = ""
    amount: int = Field(ge=0)
    locked: bool = False

    def with_amount(
        self, amount: int, item_type: SettlementItemType | None = None
    ) -> SettlementItem:
        """Return a copy with a new amount.

        Locked lines (fixed accommodation) only accept a new amount together
        with a different line type, which also drops the lock.
        """
        if self.locked and (item_type is None or item_type == self.type):
            raise LockedLineItemError(
                f"{self.type} line is fixed at {self.amount}; change its type first"
            )
        if item_type is not None and item_type != self.type:
            return SettlementItem(
                type=item_type, description=self.description, amount=amount
            )
        return self.model_copy(update={"amount": amount})


class Settlement(BaseModel):
    id: str = Field(default_factory=_new_id)
    program_id: str
    instructor_id: str
    matching_id: str | None = None
    period: str
    items: list[SettlementItem] = Field(default_factory=list)
    total_amount: int = 0
    status: SettlementStatus = SettlementStatus.PENDING
    notes: str | None = None
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    document_generated_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    @model_validator(mode="after")
    def _total_from_items(self) -> Settlement:
        # total_amount is always derived from the line items
        self.total_amount = sum(item.amount for item in self.items)
        return self


class ApprovalHistoryEntry(BaseModel):
    """Audit record of one status change."""

    id: str = Field(default_factory=_new_id)
    entity_kind: WorkflowKind
    entity_id: str
    step: ApprovalStep
    action: ApprovalAction
    from_status: str
    to_status: str
    actor: str | None = None
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Settlement calculation rules
# ---------------------------------------------------------------------------


class InstructorFeeRule(BaseModel):
    default_amount: int = Field(ge=0)
    by_program_format: dict[str, int] = Field(default_factory=dict)
    by_program_type: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _non_negative_overrides(self) -> InstructorFeeRule:
        for table in (self.by_program_format, self.by_program_type):
            for key, amount in table.items():
                if amount < 0:
                    raise ValueError(f"instructor fee for {key!r} must be >= 0")
        return self


class TransportationRule(BaseModel):
    type: TransportationRuleType = TransportationRuleType.NONE
    enabled: bool = False
    distance_threshold: float | None = Field(
        default=None, ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False
    )
    rate_per_km: int | None = Field(default=None, ge=0, le=MAX_RATE_PER_KM)
    fixed_amount: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _required_parameters(self) -> TransportationRule:
        if not self.enabled:
            return self
        if self.type == TransportationRuleType.DISTANCE:
            if self.distance_threshold is None or self.rate_per_km is None:
                raise ValueError(
                    "distance transportation requires distance_threshold and rate_per_km"
                )
        elif self.type == TransportationRuleType.FIXED and self.fixed_amount is None:
            raise ValueError("fixed transportation requires fixed_amount")
        return self


class AccommodationRule(BaseModel):
    type: AccommodationRuleType = AccommodationRuleType.NONE
    enabled: bool = False
    fixed_amount: int | None = Field(default=None, ge=0)
    max_amount: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _required_parameters(self) -> AccommodationRule:
        if (
            self.enabled
            and self.type == AccommodationRuleType.FIXED
            and self.fixed_amount is None
        ):
            raise ValueError("fixed accommodation requires fixed_amount")
        return self


class SettlementCalculationRule(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    instructor_fee: InstructorFeeRule
    transportation: TransportationRule = Field(default_factory=TransportationRule)
    accommodation: AccommodationRule = Field(default_factory=AccommodationRule)
    program_id: str | None = None
    enabled: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CalculationInput(BaseModel):
    base_fee_override: int | None = Field(default=None, ge=0)
    distance_km: float | None = Field(
        default=None, ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False
    )
    nights: int | None = Field(default=None, ge=0)
    accommodation_override: int | None = Field(default=None, ge=0)
    program_format: str | None = None
    program_type: str | None = None


class SettlementCalculation(BaseModel):
    items: list[SettlementItem]
    total: int


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ScheduleInput(BaseModel):
    program_id: str | None = None
    title: str = ""
    date: date
    start_time: time
    end_time: time
    instructor_id: str | None = None
    location: str | None = None
    online_link: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ScheduleInput:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleWriteResponse(BaseModel):
    schedule: Schedule
    conflicts: list[Schedule] = Field(default_factory=list)


class ApplicationCreate(BaseModel):
    program_id: str
    subject_type: ApplicationSubjectType
    subject_id: str
    notes: str | None = None


class SettlementCreate(BaseModel):
    program_id: str
    instructor_id: str
    matching_id: str | None = None
    period: str
    items: list[SettlementItem] = Field(default_factory=list)
    notes: str | None = None


class TransitionRequest(BaseModel):
    target: str
    reason: str | None = None
    actor: str | None = None
    expected_version: int | None = None


class TransitionOptions(BaseModel):
    current: str
    next_statuses: list[str]
    auto_advance: str | None = None
    is_terminal: bool


class CalculationRequest(BaseModel):
    rule_id: str | None = None
    input: CalculationInput = Field(default_factory=CalculationInput)
