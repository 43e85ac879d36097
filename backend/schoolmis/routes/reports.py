"""Reports and analytics endpoints."""

from __future__ import annotations

import csv
import io
import logging
from collections import Counter
from typing import Any, Dict, List

from flask import Blueprint, Response, jsonify
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import MongoStore
from ..evaluation import GRADE_BANDS, FAIL_GRADE, PromotionStatus, grade_for_score
from ..results import (
    assign_positions,
    class_summaries,
    find_term_assessments,
    group_by_student,
    student_term_report,
    summarize_assessments,
)
from ..validation import clean_string, validate_period
from .common import (
    get_store,
    handle_config_error,
    handle_db_error,
    json_error,
    validation_error,
)

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

logger = logging.getLogger(__name__)

GRADE_ORDER = tuple(grade for _, grade, _ in GRADE_BANDS) + (FAIL_GRADE,)


def _status_counts(rows: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = {status.value: 0 for status in PromotionStatus}
    for row in rows:
        status = row.get("promotion_status")
        if status in counts:
            counts[status] += 1
    return counts


def _grade_distribution(assessments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    counter: Counter = Counter()
    for document in assessments:
        score = document.get("total_score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            counter[grade_for_score(score).grade] += 1
    return [{"grade": grade, "count": counter.get(grade, 0)} for grade in GRADE_ORDER]


def _mean(values: List[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


def _load_student(store: MongoStore, student_id: str) -> Dict[str, Any] | None:
    return store.get_students_collection().find_one({"_id": student_id})


def _school_rows(
    store: MongoStore, assessments: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Summarise every assessed student in ``assessments``."""

    grouped = group_by_student(assessments)
    students: Dict[str, Dict[str, Any]] = {}
    if grouped:
        cursor = store.get_students_collection().find(
            {"_id": {"$in": list(grouped.keys())}},
            projection={"_id": 1, "full_name": 1, "class_name": 1},
        )
        students = {str(doc["_id"]): doc for doc in cursor}

    rows: List[Dict[str, Any]] = []
    for student_id, student_assessments in grouped.items():
        student = students.get(student_id) or {}
        class_name = student_assessments[0].get("class_name") or student.get("class_name")
        row: Dict[str, Any] = {
            "student_id": student_id,
            "full_name": student.get("full_name"),
            "class_name": class_name,
        }
        row.update(summarize_assessments(student_assessments).to_dict())
        rows.append(row)

    rows.sort(key=lambda row: ((row.get("class_name") or ""), row["student_id"]))
    return rows


@reports_bp.get("/student/<student_id>/<term>/<path:academic_year>")
def student_report(student_id: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    student_id_clean = clean_string(student_id)
    try:
        store = get_store()
        student = _load_student(store, student_id_clean)
        if not student:
            return json_error("Student not found.", 404)

        assessments = find_term_assessments(
            store, {"student_id": student_id_clean}, period["term"], period["academic_year"]
        )
        return jsonify(
            student_term_report(student, assessments, period["term"], period["academic_year"])
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to build student report", exc)


@reports_bp.get("/generate/<student_id>/<term>/<path:academic_year>")
def generate_report_card(student_id: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    student_id_clean = clean_string(student_id)
    try:
        store = get_store()
        student = _load_student(store, student_id_clean)
        if not student:
            return json_error("Student not found.", 404)

        assessments = find_term_assessments(
            store, {"student_id": student_id_clean}, period["term"], period["academic_year"]
        )
        if not assessments:
            return json_error("No assessments recorded for this term.", 404)

        report = student_term_report(
            student, assessments, period["term"], period["academic_year"]
        )

        class_name = assessments[0].get("class_name") or student.get("class_name")
        ranking = class_summaries(store, class_name, period["term"], period["academic_year"])
        position = next(
            (row["position"] for row in ranking if row["student_id"] == student_id_clean),
            None,
        )

        report["class_name"] = class_name
        report["position"] = position
        report["class_size"] = len(ranking)
        logger.info(
            "Generated report card for %s (%s %s)",
            student_id_clean,
            period["term"],
            period["academic_year"],
        )
        return jsonify(report)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to generate report card", exc)


@reports_bp.get("/class/<class_name>/<term>/<path:academic_year>")
def class_report(class_name: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    class_name_clean = clean_string(class_name)
    try:
        rows = class_summaries(
            get_store(), class_name_clean, period["term"], period["academic_year"]
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to build class report", exc)

    averages = [row["average_score"] for row in rows if row["average_score"] is not None]
    return jsonify(
        {
            "class_name": class_name_clean,
            "term": period["term"],
            "academic_year": period["academic_year"],
            "student_count": len(rows),
            "class_average": _mean(averages),
            "promotion_summary": _status_counts(rows),
            "students": rows,
        }
    )


@reports_bp.get("/headmaster/<term>/<path:academic_year>")
def headmaster_report(term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    try:
        store = get_store()
        assessments = find_term_assessments(store, {}, period["term"], period["academic_year"])
        rows = _school_rows(store, assessments)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to build headmaster report", exc)

    by_class: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        by_class.setdefault(row.get("class_name") or "UNASSIGNED", []).append(row)

    classes: List[Dict[str, Any]] = []
    for class_name in sorted(by_class):
        class_rows = by_class[class_name]
        averages = [r["average_score"] for r in class_rows if r["average_score"] is not None]
        classes.append(
            {
                "class_name": class_name,
                "student_count": len(class_rows),
                "class_average": _mean(averages),
                "promotion_summary": _status_counts(class_rows),
            }
        )

    assign_positions(classes, key=lambda entry: entry.get("class_average"), field="rank")
    school_averages = [r["average_score"] for r in rows if r["average_score"] is not None]
    top_students = assign_positions(
        [dict(row) for row in rows], key=lambda row: row.get("average_score")
    )[:10]

    return jsonify(
        {
            "term": period["term"],
            "academic_year": period["academic_year"],
            "student_count": len(rows),
            "assessment_count": len(assessments),
            "school_average": _mean(school_averages),
            "grade_distribution": _grade_distribution(assessments),
            "promotion_summary": _status_counts(rows),
            "classes": classes,
            "top_students": top_students,
        }
    )


@reports_bp.get("/promotion/<term>/<path:academic_year>")
def promotion_report(term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    try:
        store = get_store()
        assessments = find_term_assessments(store, {}, period["term"], period["academic_year"])
        rows = _school_rows(store, assessments)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to build promotion report", exc)

    return jsonify(
        {
            "term": period["term"],
            "academic_year": period["academic_year"],
            "summary": _status_counts(rows),
            "students": rows,
        }
    )


@reports_bp.get("/statistics")
def statistics():
    def _count_by(field: str, missing: str) -> List[Dict[str, Any]]:
        pipeline = [
            {"$group": {"_id": {"$ifNull": [f"${field}", missing]}, "count": {"$sum": 1}}},
            {"$project": {"_id": 0, field: "$_id", "count": 1}},
            {"$sort": {"count": -1, field: 1}},
        ]
        return list(students_collection.aggregate(pipeline))

    try:
        store = get_store()
        students_collection = store.get_students_collection()
        assessments_collection = store.get_assessments_collection()

        payload = {
            "total_students": students_collection.count_documents({}),
            "total_assessments": assessments_collection.count_documents({}),
            "students_by_class": _count_by("class_name", "UNASSIGNED"),
            "students_by_programme": _count_by("programme", "UNDECLARED"),
            "students_by_gender": _count_by("gender", "UNKNOWN"),
        }
        return jsonify(payload)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load statistics", exc)


@reports_bp.get("/export/<class_name>/<term>/<path:academic_year>")
def export_class_report(class_name: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    class_name_clean = clean_string(class_name)
    try:
        rows = class_summaries(
            get_store(), class_name_clean, period["term"], period["academic_year"]
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to export class report", exc)

    output = io.StringIO()
    fieldnames = [
        "position",
        "student_id",
        "full_name",
        "subject_count",
        "total_score",
        "average_score",
        "failed_subjects",
        "promotion_status",
    ]
    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({field: "" if row.get(field) is None else row.get(field) for field in fieldnames})

    slug = "_".join(
        part
        for part in (class_name_clean, period["term"], period["academic_year"])
        if part
    )
    filename = "".join(ch if ch.isalnum() else "_" for ch in slug) + ".csv"

    response = Response(output.getvalue(), mimetype="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response


__all__ = ["reports_bp"]
