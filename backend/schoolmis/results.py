"""Term result assembly on top of stored assessments.

These helpers read assessment documents for a term and run them through the
evaluation rules. They are shared by the assessment and report blueprints.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Sequence

from .db import MongoStore, serialize_assessment, serialize_student
from .evaluation import TermSummary, grade_for_score, summarize_scores


def _score_of(document: Dict[str, Any]) -> float | None:
    value = document.get("total_score")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def subject_rows(assessments: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialise assessments ordered by subject, regrading from the total score."""

    rows: List[Dict[str, Any]] = []
    for document in assessments:
        row = serialize_assessment(document)
        score = _score_of(document)
        if score is not None:
            row.update(grade_for_score(score).to_dict())
        rows.append(row)
    rows.sort(key=lambda item: (item.get("subject") or "").lower())
    return rows


def summarize_assessments(assessments: Iterable[Dict[str, Any]]) -> TermSummary:
    scores = [score for score in map(_score_of, assessments) if score is not None]
    return summarize_scores(scores)


def find_term_assessments(
    store: MongoStore, filters: Dict[str, Any], term: str, academic_year: str
) -> List[Dict[str, Any]]:
    query = dict(filters)
    query["term"] = term
    query["academic_year"] = academic_year
    cursor = store.get_assessments_collection().find(
        query, sort=[("student_id", 1), ("subject", 1)]
    )
    return list(cursor)


def group_by_student(
    assessments: Iterable[Dict[str, Any]],
) -> "OrderedDict[str, List[Dict[str, Any]]]":
    grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for document in assessments:
        grouped.setdefault(str(document.get("student_id") or ""), []).append(document)
    return grouped


def assign_positions(
    rows: Sequence[Dict[str, Any]],
    *,
    key: Callable[[Dict[str, Any]], float | None],
    field: str = "position",
) -> List[Dict[str, Any]]:
    """Sort ``rows`` best first and set competition ranks (1, 2, 2, 4).

    Rows whose key is ``None`` go last without a position.
    """

    ranked = [row for row in rows if key(row) is not None]
    unranked = [row for row in rows if key(row) is None]
    ranked.sort(key=lambda row: -key(row))

    previous: float | None = None
    position = 0
    for index, row in enumerate(ranked, start=1):
        value = key(row)
        if value != previous:
            position = index
            previous = value
        row[field] = position

    for row in unranked:
        row[field] = None

    return ranked + unranked


def class_summaries(
    store: MongoStore, class_name: str, term: str, academic_year: str
) -> List[Dict[str, Any]]:
    """Return one ranked summary row per student assessed in the class."""

    grouped = group_by_student(
        find_term_assessments(store, {"class_name": class_name}, term, academic_year)
    )

    students: Dict[str, Dict[str, Any]] = {}
    if grouped:
        cursor = store.get_students_collection().find(
            {"_id": {"$in": list(grouped.keys())}},
            projection={"_id": 1, "full_name": 1, "gender": 1, "class_name": 1, "programme": 1},
        )
        students = {str(doc["_id"]): doc for doc in cursor}

    rows: List[Dict[str, Any]] = []
    for student_id, assessments in grouped.items():
        student = students.get(student_id)
        row: Dict[str, Any] = {
            "student_id": student_id,
            "full_name": student.get("full_name") if student else None,
        }
        row.update(summarize_assessments(assessments).to_dict())
        rows.append(row)

    return assign_positions(rows, key=lambda row: row.get("average_score"))


def student_term_report(
    student: Dict[str, Any], assessments: List[Dict[str, Any]], term: str, academic_year: str
) -> Dict[str, Any]:
    return {
        "student": serialize_student(student),
        "term": term,
        "academic_year": academic_year,
        "subjects": subject_rows(assessments),
        "summary": summarize_assessments(assessments).to_dict(),
    }


__all__ = [
    "assign_positions",
    "class_summaries",
    "find_term_assessments",
    "group_by_student",
    "student_term_report",
    "subject_rows",
    "summarize_assessments",
]
