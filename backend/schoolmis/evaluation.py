"""Grade and promotion rules for terminal assessments."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Dict, Iterable, List, Tuple


class EvaluationInputError(ValueError):
    """Raised when a score or failed-subject count is outside its domain."""


class PromotionStatus(str, Enum):
    PROMOTED = "Promoted"
    CONDITIONAL = "Conditional"
    REPEAT = "Repeat"


@dataclass(frozen=True)
class GradeResult:
    grade: str
    remark: str

    def to_dict(self) -> Dict[str, str]:
        return {"grade": self.grade, "remark": self.remark}


FAIL_GRADE = "F9"

# (minimum score, grade, remark), highest band first.
GRADE_BANDS: Tuple[Tuple[float, str, str], ...] = (
    (80, "A1", "Excellent"),
    (75, "B2", "Very Good"),
    (70, "B3", "Good"),
    (65, "C4", "Credit"),
    (60, "C5", "Credit"),
    (55, "C6", "Credit"),
    (50, "D7", "Pass"),
    (45, "D8", "Pass"),
)

_FAIL_RESULT = GradeResult(FAIL_GRADE, "Fail")

# (minimum average, maximum failed subjects, status), checked in order.
PROMOTION_RULES: Tuple[Tuple[float, int, PromotionStatus], ...] = (
    (50, 2, PromotionStatus.PROMOTED),
    (40, 3, PromotionStatus.CONDITIONAL),
)

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def grade_for_score(score: float) -> GradeResult:
    """Return the grade band a score falls into.

    Total over numbers: anything below 45 (negatives included) is F9 and
    anything from 80 up (including above 100) is A1. Range checks belong to
    the caller, see :func:`check_score`.
    """

    for threshold, grade, remark in GRADE_BANDS:
        if score >= threshold:
            return GradeResult(grade, remark)
    return _FAIL_RESULT


def promotion_status(average_score: float, failed_subjects: int) -> PromotionStatus:
    """Return the promotion decision for a term average and failure count."""

    for minimum_average, max_failed, status in PROMOTION_RULES:
        if average_score >= minimum_average and failed_subjects <= max_failed:
            return status
    return PromotionStatus.REPEAT


def is_failing(grade: str | None) -> bool:
    return grade == FAIL_GRADE


@dataclass(frozen=True)
class TermSummary:
    subject_count: int
    total_score: float
    average_score: float | None
    failed_subjects: int
    status: PromotionStatus | None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_count": self.subject_count,
            "total_score": self.total_score,
            "average_score": self.average_score,
            "failed_subjects": self.failed_subjects,
            "promotion_status": self.status.value if self.status else None,
        }


def summarize_scores(scores: Iterable[float]) -> TermSummary:
    """Aggregate subject scores into an average, failure count and status."""

    values: List[float] = [float(score) for score in scores]
    if not values:
        return TermSummary(0, 0.0, None, 0, None)

    total = sum(values)
    mean = total / len(values)
    failed = sum(1 for value in values if is_failing(grade_for_score(value).grade))

    # Classify on the exact mean; rounding is for display only.
    return TermSummary(
        subject_count=len(values),
        total_score=round(total, 2),
        average_score=round(mean, 2),
        failed_subjects=failed,
        status=promotion_status(mean, failed),
    )


def check_score(value: Any, *, name: str = "score") -> float:
    """Coerce ``value`` to a float in 0–100 or raise :class:`EvaluationInputError`."""

    if isinstance(value, bool) or not isinstance(value, (Real, str)):
        raise EvaluationInputError(f"{name} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EvaluationInputError(f"{name} must be a number.") from None
    if not math.isfinite(number):
        raise EvaluationInputError(f"{name} must be a finite number.")
    if number < MIN_SCORE or number > MAX_SCORE:
        raise EvaluationInputError(
            f"{name} must be between {MIN_SCORE:g} and {MAX_SCORE:g}."
        )
    return number


def check_failed_subjects(value: Any, *, name: str = "failed_subjects") -> int:
    """Coerce ``value`` to a non-negative int or raise :class:`EvaluationInputError`."""

    if isinstance(value, bool):
        raise EvaluationInputError(f"{name} must be a non-negative integer.")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EvaluationInputError(f"{name} must be a non-negative integer.") from None
    if not math.isfinite(number) or number != int(number) or number < 0:
        raise EvaluationInputError(f"{name} must be a non-negative integer.")
    return int(number)


def grade_bands() -> List[Dict[str, Any]]:
    bands: List[Dict[str, Any]] = [
        {"min_score": threshold, "grade": grade, "remark": remark}
        for threshold, grade, remark in GRADE_BANDS
    ]
    bands.append({"min_score": MIN_SCORE, **_FAIL_RESULT.to_dict()})
    return bands


def promotion_rules() -> List[Dict[str, Any]]:
    rules: List[Dict[str, Any]] = [
        {
            "status": status.value,
            "min_average": minimum_average,
            "max_failed_subjects": max_failed,
        }
        for minimum_average, max_failed, status in PROMOTION_RULES
    ]
    rules.append(
        {
            "status": PromotionStatus.REPEAT.value,
            "min_average": None,
            "max_failed_subjects": None,
        }
    )
    return rules


__all__ = [
    "EvaluationInputError",
    "FAIL_GRADE",
    "GRADE_BANDS",
    "GradeResult",
    "PROMOTION_RULES",
    "PromotionStatus",
    "TermSummary",
    "check_failed_subjects",
    "check_score",
    "grade_bands",
    "grade_for_score",
    "is_failing",
    "promotion_rules",
    "promotion_status",
    "summarize_scores",
]
