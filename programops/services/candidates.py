"""Service for ranking instructors as candidates for a program."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from programops.domain.models import Instructor, Program, ProgramType, Schedule
from programops.services.conflicts import find_conflicts_for


@dataclass(frozen=True)
class ScoringWeights:
    per_specialty_match: float = 10
    online_available: float = 5
    per_rating_point: float = 2
    max_experience_points: float = 10


@dataclass
class InstructorCandidate:
    instructor: Instructor
    score: float
    reasons: list[str] = field(default_factory=list)


def _matched_specialties(program: Program, instructor: Instructor) -> list[str]:
    if not program.description:
        return []
    keywords = program.description.lower()
    return [
        specialty
        for specialty in instructor.specialty
        if specialty.lower() in keywords or keywords in specialty.lower()
    ]


def score_instructor(
    program: Program, instructor: Instructor, weights: ScoringWeights = ScoringWeights()
) -> InstructorCandidate:
    score = 0.0
    reasons: list[str] = []

    matched = _matched_specialties(program, instructor)
    if matched:
        score += len(matched) * weights.per_specialty_match
        reasons.append(f"Specialty match: {', '.join(matched)}")

    if program.type == ProgramType.ONLINE and instructor.available_time:
        score += weights.online_available
        reasons.append("Available online")

    if instructor.rating:
        score += instructor.rating * weights.per_rating_point
        reasons.append(f"Rating: {instructor.rating:.1f}")

    if instructor.experience_years:
        score += min(instructor.experience_years, weights.max_experience_points)
        reasons.append(f"Experience: {instructor.experience_years} years")

    return InstructorCandidate(instructor=instructor, score=score, reasons=reasons)


def suggest_candidates(
    program: Program,
    instructors: Iterable[Instructor],
    exclude_ids: Iterable[str] = (),
    weights: ScoringWeights = ScoringWeights(),
    sessions: Iterable[Schedule] = (),
    booked: Iterable[Schedule] = (),
) -> list[InstructorCandidate]:
    """Rank instructors for *program*, best first.

    Instructors in *exclude_ids* (already matched) are skipped, as are those
    whose *booked* schedules overlap any of the program's *sessions*.
    Candidates with a zero score are dropped.
    """
    excluded = set(exclude_ids)
    sessions = list(sessions)
    booked = list(booked)

    candidates: list[InstructorCandidate] = []
    for instructor in instructors:
        if instructor.id in excluded:
            continue
        if sessions and _is_double_booked(instructor.id, sessions, booked):
            continue
        candidate = score_instructor(program, instructor, weights)
        if candidate.score > 0:
            candidates.append(candidate)

    return sorted(candidates, key=lambda c: c.score, reverse=True)


def _is_double_booked(
    instructor_id: str, sessions: list[Schedule], booked: list[Schedule]
) -> bool:
    for session in sessions:
        trial = session.model_copy(update={"instructor_id": instructor_id})
        if find_conflicts_for(trial, booked):
            return True
    return False
