"""Request payload validation.

Each validator returns ``(cleaned, errors)``. ``errors`` maps a field name to
a human readable message; the special ``_global`` key is used when the body
itself is unusable.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Tuple

from .evaluation import (
    EvaluationInputError,
    check_failed_subjects,
    check_score,
    grade_for_score,
)
from .utils.academic import TERMS, normalize_academic_year, normalize_term

GENDERS = ("Male", "Female")

# Continuous assessment and end-of-term exam contribute 30 and 70 marks.
SCORE_COMPONENTS: Dict[str, Tuple[float, float]] = {
    "class_score": (0.0, 30.0),
    "exam_score": (0.0, 70.0),
}

Payload = Dict[str, Any]
Errors = Dict[str, str]


def clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _term_error() -> str:
    return "Term must be one of: " + ", ".join(TERMS) + "."


def validate_student_payload(
    payload: Payload | None, *, require_all: bool
) -> Tuple[Payload, Errors]:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be a JSON object."}

    errors: Errors = {}
    cleaned: Payload = {}

    def require_field(field: str, message: str) -> bool:
        if field not in payload or clean_string(payload.get(field)) == "":
            errors[field] = message
            return False
        return True

    if require_all or "_id" in payload:
        if require_field("_id", "Student ID is required."):
            cleaned["_id"] = clean_string(payload.get("_id"))

    if require_all or "full_name" in payload:
        if require_field("full_name", "Full name is required."):
            cleaned["full_name"] = clean_string(payload.get("full_name"))

    if require_all or "gender" in payload:
        if require_field("gender", "Gender is required."):
            gender = clean_string(payload.get("gender")).capitalize()
            if gender not in GENDERS:
                errors["gender"] = "Gender must be Male or Female."
            else:
                cleaned["gender"] = gender

    if require_all or "class_name" in payload:
        if require_field("class_name", "Class is required."):
            cleaned["class_name"] = clean_string(payload.get("class_name"))

    if require_all or "programme" in payload:
        if require_field("programme", "Programme is required."):
            cleaned["programme"] = clean_string(payload.get("programme"))

    if "email" in payload and clean_string(payload.get("email")):
        email = clean_string(payload.get("email"))
        if "@" not in email or "." not in email.split("@")[-1]:
            errors["email"] = "Enter a valid email address."
        else:
            cleaned["email"] = email.lower()

    if "date_of_birth" in payload and clean_string(payload.get("date_of_birth")):
        raw_dob = clean_string(payload.get("date_of_birth"))
        try:
            dob = date.fromisoformat(raw_dob[:10])
        except ValueError:
            errors["date_of_birth"] = "Date of birth must be an ISO date (YYYY-MM-DD)."
        else:
            if dob > date.today():
                errors["date_of_birth"] = "Date of birth cannot be in the future."
            else:
                cleaned["date_of_birth"] = dob.isoformat()

    for optional in ("guardian_name", "guardian_phone"):
        if optional in payload:
            cleaned[optional] = clean_string(payload.get(optional))

    return cleaned, errors


def _clean_term_fields(payload: Payload, cleaned: Payload, errors: Errors, *, require_all: bool) -> None:
    if require_all or "term" in payload:
        term = normalize_term(payload.get("term"))
        if term is None:
            errors["term"] = _term_error()
        else:
            cleaned["term"] = term

    if require_all or "academic_year" in payload:
        academic_year = normalize_academic_year(payload.get("academic_year"))
        if academic_year is None:
            errors["academic_year"] = "Academic year must look like 2025/2026."
        else:
            cleaned["academic_year"] = academic_year


def validate_assessment_payload(
    payload: Payload | None, *, require_all: bool
) -> Tuple[Payload, Errors]:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be a JSON object."}

    errors: Errors = {}
    cleaned: Payload = {}

    required_text = {
        "student_id": "Student ID is required.",
        "subject": "Subject is required.",
        "class_name": "Class is required.",
    }
    for field, message in required_text.items():
        if require_all or field in payload:
            value = clean_string(payload.get(field))
            if not value:
                errors[field] = message
            else:
                cleaned[field] = value

    _clean_term_fields(payload, cleaned, errors, require_all=require_all)

    for field, (minimum, maximum) in SCORE_COMPONENTS.items():
        if field not in payload or payload.get(field) in (None, ""):
            if require_all:
                errors[field] = f"{field.replace('_', ' ').capitalize()} is required."
            continue

        value = payload.get(field)
        if isinstance(value, bool):
            errors[field] = "Scores must be numeric."
            continue
        try:
            numeric_value = float(value)
        except (TypeError, ValueError):
            errors[field] = "Scores must be numeric."
            continue

        if not minimum <= numeric_value <= maximum:
            errors[field] = (
                f"{field.replace('_', ' ').capitalize()} must be between "
                f"{minimum:g} and {maximum:g}."
            )
            continue

        cleaned[field] = round(numeric_value, 2)

    return cleaned, errors


def score_fields(class_score: float, exam_score: float) -> Payload:
    """Return the derived ``total_score``, ``grade`` and ``remark`` fields."""

    total = round(class_score + exam_score, 2)
    result = grade_for_score(total)
    return {"total_score": total, "grade": result.grade, "remark": result.remark}


def validate_promotion_payload(payload: Payload | None) -> Tuple[Payload, Errors]:
    """Validate a promotion request.

    Either ``average_score`` with ``failed_subjects`` is given directly, or a
    ``student_id`` with ``term`` and ``academic_year`` so the figures can be
    derived from stored assessments. ``cleaned["mode"]`` says which.
    """

    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be a JSON object."}

    errors: Errors = {}
    cleaned: Payload = {}

    if "average_score" in payload or "failed_subjects" in payload:
        cleaned["mode"] = "direct"
        try:
            cleaned["average_score"] = check_score(
                payload.get("average_score"), name="average_score"
            )
        except EvaluationInputError as exc:
            errors["average_score"] = str(exc)
        try:
            cleaned["failed_subjects"] = check_failed_subjects(
                payload.get("failed_subjects")
            )
        except EvaluationInputError as exc:
            errors["failed_subjects"] = str(exc)
        return cleaned, errors

    student_id = clean_string(payload.get("student_id"))
    if not student_id:
        return {}, {
            "_global": (
                "Provide average_score and failed_subjects, or student_id "
                "with term and academic_year."
            )
        }

    cleaned["mode"] = "student"
    cleaned["student_id"] = student_id
    _clean_term_fields(payload, cleaned, errors, require_all=True)
    return cleaned, errors


def validate_period(term: Any, academic_year: Any) -> Tuple[Payload, Errors]:
    """Validate a ``term``/``academic_year`` pair taken from a URL."""

    cleaned: Payload = {}
    errors: Errors = {}
    _clean_term_fields(
        {"term": term, "academic_year": academic_year},
        cleaned,
        errors,
        require_all=True,
    )
    return cleaned, errors


__all__ = [
    "GENDERS",
    "SCORE_COMPONENTS",
    "clean_string",
    "score_fields",
    "validate_assessment_payload",
    "validate_period",
    "validate_promotion_payload",
    "validate_student_payload",
]
