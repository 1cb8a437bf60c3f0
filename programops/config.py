"""Environment settings and calculation rule loading."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ValidationError

from programops.domain.models import (
    AccommodationRule,
    AccommodationRuleType,
    InstructorFeeRule,
    SettlementCalculationRule,
    TransportationRule,
    TransportationRuleType,
)
from programops.exceptions import RuleConfigurationError

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    log_level: str = "INFO"
    rules_file: Path | None = None
    seed_demo_data: bool = False


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Read PROGRAMOPS_* variables from *environ* (defaults to os.environ)."""
    env = os.environ if environ is None else environ
    rules_file = env.get("PROGRAMOPS_RULES_FILE")
    return Settings(
        log_level=env.get("PROGRAMOPS_LOG_LEVEL", "INFO"),
        rules_file=Path(rules_file) if rules_file else None,
        seed_demo_data=env.get("PROGRAMOPS_SEED_DEMO_DATA", "").lower() in _TRUE,
    )


DEFAULT_RULE = SettlementCalculationRule(
    id="default",
    name="Default settlement rule",
    description="Distance-based transportation beyond 60 km, fixed lodging",
    instructor_fee=InstructorFeeRule(default_amount=200000),
    transportation=TransportationRule(
        type=TransportationRuleType.DISTANCE,
        enabled=True,
        distance_threshold=60,
        rate_per_km=100,
    ),
    accommodation=AccommodationRule(
        type=AccommodationRuleType.FIXED,
        enabled=True,
        fixed_amount=80000,
    ),
)


def parse_rules(payload: object) -> list[SettlementCalculationRule]:
    """Validate every rule in *payload* before returning any of them."""
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise RuleConfigurationError("Rule configuration must be a JSON object or list")

    rules: list[SettlementCalculationRule] = []
    for index, raw in enumerate(payload):
        try:
            rules.append(SettlementCalculationRule.model_validate(raw))
        except ValidationError as exc:
            raise RuleConfigurationError(f"Rule #{index} is invalid: {exc}") from exc
    return rules


def load_rules(path: str | Path) -> list[SettlementCalculationRule]:
    """Load calculation rules from a JSON file, failing on the first bad rule."""
    rules_path = Path(path)
    try:
        payload = json.loads(rules_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RuleConfigurationError(f"Cannot read rules from {rules_path}: {exc}") from exc
    rules = parse_rules(payload)
    logger.info("Loaded %d settlement rules from %s", len(rules), rules_path)
    return rules
