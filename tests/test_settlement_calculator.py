"""Tests for settlement line-item calculation and rule validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from programops.config import DEFAULT_RULE
from programops.domain.models import (
    MAX_DISTANCE_KM,
    MAX_RATE_PER_KM,
    AccommodationRule,
    AccommodationRuleType,
    CalculationInput,
    InstructorFeeRule,
    SettlementCalculationRule,
    SettlementItem,
    SettlementItemType,
    TransportationRule,
    TransportationRuleType,
)
from programops.exceptions import LockedLineItemError
from programops.services.settlement_calculator import calculate, settlement_total


def _rule(**overrides) -> SettlementCalculationRule:
    fields = dict(
        name="Test rule",
        instructor_fee=InstructorFeeRule(default_amount=200000),
        transportation=TransportationRule(
            type=TransportationRuleType.DISTANCE,
            enabled=True,
            distance_threshold=60,
            rate_per_km=100,
        ),
        accommodation=AccommodationRule(),
    )
    fields.update(overrides)
    return SettlementCalculationRule(**fields)


def _amounts(result) -> dict[SettlementItemType, int]:
    return {item.type: item.amount for item in result.items}


# ---------------------------------------------------------------------------
# Instructor fee
# ---------------------------------------------------------------------------


def test_default_fee_only():
    result = calculate(_rule(), CalculationInput())
    assert _amounts(result) == {SettlementItemType.INSTRUCTOR_FEE: 200000}
    assert result.total == 200000


def test_fee_override_wins():
    rule = _rule(
        instructor_fee=InstructorFeeRule(
            default_amount=200000, by_program_format={"camp": 300000}
        )
    )
    result = calculate(rule, CalculationInput(base_fee_override=150000, program_format="camp"))
    assert _amounts(result)[SettlementItemType.INSTRUCTOR_FEE] == 150000


def test_fee_by_program_format_then_type():
    rule = _rule(
        instructor_fee=InstructorFeeRule(
            default_amount=200000,
            by_program_format={"camp": 300000},
            by_program_type={"online": 120000},
        )
    )
    assert calculate(rule, CalculationInput(program_format="camp")).total == 300000
    assert calculate(rule, CalculationInput(program_type="online")).total == 120000


# ---------------------------------------------------------------------------
# Transportation
# ---------------------------------------------------------------------------


def test_distance_mode_example():
    """80 km at 100/km beyond a 60 km threshold: 8,000 transport, 208,000 total."""
    result = calculate(_rule(), CalculationInput(distance_km=80))
    assert _amounts(result)[SettlementItemType.TRANSPORTATION] == 8000
    assert result.total == 208000


def test_distance_threshold_boundary():
    at_threshold = calculate(_rule(), CalculationInput(distance_km=60))
    beyond = calculate(_rule(), CalculationInput(distance_km=61))
    assert SettlementItemType.TRANSPORTATION not in _amounts(at_threshold)
    assert _amounts(beyond)[SettlementItemType.TRANSPORTATION] == 6100


def test_fractional_distance_rounds_to_whole_amount():
    result = calculate(_rule(), CalculationInput(distance_km=70.555))
    assert _amounts(result)[SettlementItemType.TRANSPORTATION] == 7056


@pytest.mark.parametrize("distance", [float("inf"), float("nan"), 1e30, MAX_DISTANCE_KM + 1])
def test_unbounded_distance_rejected(distance):
    with pytest.raises(ValidationError):
        CalculationInput(distance_km=distance)


def test_longest_distance_still_calculates():
    rule = _rule(
        transportation=TransportationRule(
            type=TransportationRuleType.DISTANCE,
            enabled=True,
            distance_threshold=0,
            rate_per_km=MAX_RATE_PER_KM,
        )
    )
    result = calculate(rule, CalculationInput(distance_km=MAX_DISTANCE_KM))
    assert _amounts(result)[SettlementItemType.TRANSPORTATION] == MAX_DISTANCE_KM * MAX_RATE_PER_KM


def test_fixed_transportation_always_included():
    rule = _rule(
        transportation=TransportationRule(
            type=TransportationRuleType.FIXED, enabled=True, fixed_amount=30000
        )
    )
    result = calculate(rule, CalculationInput(distance_km=5))
    assert _amounts(result)[SettlementItemType.TRANSPORTATION] == 30000


def test_disabled_transportation_ignored():
    rule = _rule(
        transportation=TransportationRule(
            type=TransportationRuleType.FIXED, enabled=False, fixed_amount=30000
        )
    )
    assert SettlementItemType.TRANSPORTATION not in _amounts(calculate(rule))


# ---------------------------------------------------------------------------
# Accommodation
# ---------------------------------------------------------------------------


def test_fixed_accommodation_ignores_override():
    rule = _rule(
        accommodation=AccommodationRule(
            type=AccommodationRuleType.FIXED, enabled=True, fixed_amount=80000
        )
    )
    result = calculate(rule, CalculationInput(accommodation_override=120000, nights=1))
    lodging = [i for i in result.items if i.type == SettlementItemType.ACCOMMODATION]
    assert len(lodging) == 1
    assert lodging[0].amount == 80000
    assert lodging[0].locked is True


def test_actual_accommodation_capped():
    rule = _rule(
        accommodation=AccommodationRule(
            type=AccommodationRuleType.ACTUAL, enabled=True, max_amount=100000
        )
    )
    capped = calculate(rule, CalculationInput(accommodation_override=120000, nights=1))
    under = calculate(rule, CalculationInput(accommodation_override=70000, nights=1))
    assert _amounts(capped)[SettlementItemType.ACCOMMODATION] == 100000
    assert _amounts(under)[SettlementItemType.ACCOMMODATION] == 70000


def test_actual_accommodation_needs_a_cost():
    rule = _rule(
        accommodation=AccommodationRule(type=AccommodationRuleType.ACTUAL, enabled=True)
    )
    assert SettlementItemType.ACCOMMODATION not in _amounts(calculate(rule, CalculationInput(nights=2)))


def test_actual_accommodation_kept_without_nights():
    rule = _rule(
        accommodation=AccommodationRule(type=AccommodationRuleType.ACTUAL, enabled=True)
    )
    no_nights = calculate(rule, CalculationInput(accommodation_override=50000, nights=0))
    assert _amounts(no_nights)[SettlementItemType.ACCOMMODATION] == 50000
    assert no_nights.total == 250000


def test_default_rule_full_case():
    result = calculate(DEFAULT_RULE, CalculationInput(distance_km=80, nights=1))
    assert _amounts(result) == {
        SettlementItemType.INSTRUCTOR_FEE: 200000,
        SettlementItemType.TRANSPORTATION: 8000,
        SettlementItemType.ACCOMMODATION: 80000,
    }
    assert result.total == 288000


@pytest.mark.parametrize(
    "data",
    [
        CalculationInput(),
        CalculationInput(distance_km=200, nights=3),
        CalculationInput(base_fee_override=0, distance_km=61),
    ],
)
def test_total_equals_sum_of_items(data):
    result = calculate(DEFAULT_RULE, data)
    assert result.total == sum(item.amount for item in result.items)
    assert result.total == settlement_total(result.items)


# ---------------------------------------------------------------------------
# Rule validation and locked lines
# ---------------------------------------------------------------------------


def test_distance_rule_without_rate_rejected():
    with pytest.raises(ValidationError):
        TransportationRule(
            type=TransportationRuleType.DISTANCE, enabled=True, distance_threshold=60
        )


def test_fixed_accommodation_without_amount_rejected():
    with pytest.raises(ValidationError):
        AccommodationRule(type=AccommodationRuleType.FIXED, enabled=True)


def test_disabled_rule_may_omit_parameters():
    rule = TransportationRule(type=TransportationRuleType.DISTANCE, enabled=False)
    assert rule.rate_per_km is None


def test_negative_amount_rejected():
    with pytest.raises(ValidationError):
        InstructorFeeRule(default_amount=-1)


def test_locked_line_amount_cannot_change():
    line = SettlementItem(
        type=SettlementItemType.ACCOMMODATION, amount=80000, locked=True
    )
    with pytest.raises(LockedLineItemError):
        line.with_amount(60000)


def test_locked_line_unlocks_when_type_changes():
    line = SettlementItem(
        type=SettlementItemType.ACCOMMODATION, amount=80000, locked=True
    )
    changed = line.with_amount(60000, item_type=SettlementItemType.OTHER)
    assert changed.amount == 60000
    assert changed.type == SettlementItemType.OTHER
    assert changed.locked is False
