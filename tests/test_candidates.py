"""Tests for instructor candidate ranking."""

from __future__ import annotations

from datetime import date, time

from programops.domain.models import Instructor, Program, ProgramType, Schedule
from programops.services.candidates import ScoringWeights, score_instructor, suggest_candidates

_DAY = date(2026, 4, 2)


def _program(**overrides) -> Program:
    defaults = dict(title="Robotics camp", description="python robotics", type=ProgramType.OFFLINE)
    defaults.update(overrides)
    return Program(**defaults)


def test_score_breakdown():
    instructor = Instructor(
        name="Kim", specialty=["Python", "Robotics", "Art"], rating=4.5, experience_years=15
    )
    candidate = score_instructor(_program(), instructor)
    # 2 specialties * 10 + 4.5 * 2 + experience capped at 10
    assert candidate.score == 39.0
    assert candidate.reasons[0] == "Specialty match: Python, Robotics"


def test_online_availability_bonus():
    instructor = Instructor(name="Lee", available_time="evenings")
    online = score_instructor(_program(type=ProgramType.ONLINE, description=None), instructor)
    offline = score_instructor(_program(description=None), instructor)
    assert online.score == 5
    assert offline.score == 0


def test_custom_weights():
    instructor = Instructor(name="Kim", specialty=["Python"])
    candidate = score_instructor(_program(), instructor, ScoringWeights(per_specialty_match=3))
    assert candidate.score == 3


def test_ranking_excludes_matched_and_zero_scores():
    strong = Instructor(name="Strong", specialty=["Python"], rating=5)
    weak = Instructor(name="Weak", rating=1)
    matched = Instructor(name="Matched", specialty=["Robotics"], rating=5)
    nobody = Instructor(name="Nobody")

    ranked = suggest_candidates(_program(), [weak, matched, strong, nobody], exclude_ids=[matched.id])
    assert [c.instructor.name for c in ranked] == ["Strong", "Weak"]


def test_double_booked_instructor_skipped():
    busy = Instructor(id="busy", name="Busy", specialty=["Python"])
    free = Instructor(id="free", name="Free", specialty=["Python"])
    session = Schedule(date=_DAY, start_time=time(9), end_time=time(11))
    booked = [Schedule(date=_DAY, start_time=time(10), end_time=time(12), instructor_id="busy")]

    ranked = suggest_candidates(_program(), [busy, free], sessions=[session], booked=booked)
    assert [c.instructor.id for c in ranked] == ["free"]
