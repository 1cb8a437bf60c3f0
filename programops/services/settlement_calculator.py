"""Service for computing settlement line items from a calculation rule."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from programops.domain.models import (
    AccommodationRuleType,
    CalculationInput,
    SettlementCalculation,
    SettlementCalculationRule,
    SettlementItem,
    SettlementItemType,
    TransportationRuleType,
)

logger = logging.getLogger(__name__)

DESCRIPTIONS = {
    SettlementItemType.INSTRUCTOR_FEE: "Instructor fee",
    SettlementItemType.TRANSPORTATION: "Transportation",
    SettlementItemType.ACCOMMODATION: "Accommodation",
}


def _to_amount(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def settlement_total(items: Iterable[SettlementItem]) -> int:
    return sum(item.amount for item in items)


def instructor_fee(rule: SettlementCalculationRule, data: CalculationInput) -> int:
    """Override > program format > program type > default amount."""
    fee_rule = rule.instructor_fee
    if data.base_fee_override is not None:
        return data.base_fee_override
    if data.program_format and data.program_format in fee_rule.by_program_format:
        return fee_rule.by_program_format[data.program_format]
    if data.program_type and data.program_type in fee_rule.by_program_type:
        return fee_rule.by_program_type[data.program_type]
    return fee_rule.default_amount


def transportation_amount(
    rule: SettlementCalculationRule, data: CalculationInput
) -> int | None:
    """Transportation amount, or None when no line should be added."""
    transport = rule.transportation
    if not transport.enabled:
        return None
    if transport.type == TransportationRuleType.FIXED:
        return transport.fixed_amount
    if transport.type == TransportationRuleType.DISTANCE:
        distance = data.distance_km or 0
        # Strictly beyond the threshold: exactly the threshold pays nothing
        if distance <= transport.distance_threshold:
            return None
        return _to_amount(Decimal(str(distance)) * transport.rate_per_km)
    return None


def accommodation_amount(
    rule: SettlementCalculationRule, data: CalculationInput
) -> int | None:
    """Accommodation amount, or None when no line should be added.

    Fixed mode ignores any supplied cost; actual mode caps it at max_amount.
    """
    lodging = rule.accommodation
    if not lodging.enabled:
        return None
    if lodging.type == AccommodationRuleType.FIXED:
        return lodging.fixed_amount
    if lodging.type == AccommodationRuleType.ACTUAL:
        if data.accommodation_override is None:
            return None
        amount = data.accommodation_override
        if lodging.max_amount is not None:
            amount = min(amount, lodging.max_amount)
        return amount
    return None


def calculate(
    rule: SettlementCalculationRule, data: CalculationInput | None = None
) -> SettlementCalculation:
    """Build the settlement line items for one case and sum them.

    The rule is validated when it is constructed, so every enabled mode
    here has its required parameters.
    """
    data = data or CalculationInput()
    items = [
        SettlementItem(
            type=SettlementItemType.INSTRUCTOR_FEE,
            description=DESCRIPTIONS[SettlementItemType.INSTRUCTOR_FEE],
            amount=instructor_fee(rule, data),
        )
    ]

    transport = transportation_amount(rule, data)
    if transport is not None:
        items.append(
            SettlementItem(
                type=SettlementItemType.TRANSPORTATION,
                description=DESCRIPTIONS[SettlementItemType.TRANSPORTATION],
                amount=transport,
            )
        )

    lodging = accommodation_amount(rule, data)
    if lodging is not None:
        items.append(
            SettlementItem(
                type=SettlementItemType.ACCOMMODATION,
                description=DESCRIPTIONS[SettlementItemType.ACCOMMODATION],
                amount=lodging,
                locked=rule.accommodation.type == AccommodationRuleType.FIXED,
            )
        )

    total = settlement_total(items)
    logger.debug("Rule %s produced %d items totalling %d", rule.id, len(items), total)
    return SettlementCalculation(items=items, total=total)
