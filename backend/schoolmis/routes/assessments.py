"""Assessment (terminal score) endpoints and grading calculations."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from flask import Blueprint, jsonify, request
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import ConfigError
from ..db import serialize_assessment
from ..evaluation import (
    EvaluationInputError,
    check_score,
    grade_for_score,
    promotion_status,
)
from ..results import find_term_assessments, subject_rows, summarize_assessments
from ..utils.academic import normalize_academic_year, normalize_term
from ..utils.paging import PagingParamError, parse_limit_arg
from ..validation import (
    clean_string,
    score_fields,
    validate_assessment_payload,
    validate_period,
    validate_promotion_payload,
)
from .auth_simple import require_admin
from .common import (
    format_numeric,
    get_store,
    handle_config_error,
    handle_db_error,
    json_error,
    validation_error,
)

assessments_bp = Blueprint("assessments", __name__, url_prefix="/api/assessments")

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("class_score", "exam_score")


def _candidate_filters(assessment_id: str) -> List[Dict[str, Any]]:
    filters: List[Dict[str, Any]] = [{"_id": assessment_id}]
    try:
        filters.insert(0, {"_id": ObjectId(assessment_id)})
    except (InvalidId, TypeError):
        pass
    return filters


def _find_assessment(collection, assessment_id: str):
    for candidate in _candidate_filters(assessment_id):
        document = collection.find_one(candidate)
        if document:
            return document, candidate
    return None, None


def _student_exists(student_id: str) -> bool:
    collection = get_store().get_students_collection()
    return bool(collection.find_one({"_id": student_id}, projection={"_id": 1}))


@assessments_bp.get("")
def list_assessments():
    try:
        limit_value = parse_limit_arg(request.args.get("limit"), default=200)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    filters: Dict[str, Any] = {}
    for field in ("student_id", "class_name", "subject"):
        value = clean_string(request.args.get(field))
        if value:
            filters[field] = value

    if request.args.get("term"):
        term = normalize_term(request.args.get("term"))
        if term is None:
            return json_error("Unknown term.", 400, {"term": "Use First, Second or Third Term."})
        filters["term"] = term

    if request.args.get("academic_year"):
        academic_year = normalize_academic_year(request.args.get("academic_year"))
        if academic_year is None:
            return json_error(
                "Invalid academic year.",
                400,
                {"academic_year": "Academic year must look like 2025/2026."},
            )
        filters["academic_year"] = academic_year

    try:
        cursor = (
            get_store()
            .get_assessments_collection()
            .find(filters, sort=[("academic_year", -1), ("student_id", 1), ("subject", 1)])
            .limit(limit_value)
        )
        return jsonify([serialize_assessment(doc) for doc in cursor])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list assessments", exc)


@assessments_bp.get("/grade")
def grade_lookup():
    try:
        score = check_score(request.args.get("score"))
    except EvaluationInputError as exc:
        return json_error(str(exc), 400, {"score": str(exc)})

    payload: Dict[str, Any] = {"score": format_numeric(score)}
    payload.update(grade_for_score(score).to_dict())
    return jsonify(payload)


@assessments_bp.post("/promotion")
def calculate_promotion():
    cleaned, errors = validate_promotion_payload(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    if cleaned["mode"] == "direct":
        status = promotion_status(cleaned["average_score"], cleaned["failed_subjects"])
        return jsonify(
            {
                "average_score": format_numeric(cleaned["average_score"]),
                "failed_subjects": cleaned["failed_subjects"],
                "promotion_status": status.value,
            }
        )

    student_id = cleaned["student_id"]
    try:
        if not _student_exists(student_id):
            return json_error("Student not found.", 404)

        assessments = find_term_assessments(
            get_store(),
            {"student_id": student_id},
            cleaned["term"],
            cleaned["academic_year"],
        )
        if not assessments:
            return json_error("No assessments recorded for this term.", 404)

        payload: Dict[str, Any] = {
            "student_id": student_id,
            "term": cleaned["term"],
            "academic_year": cleaned["academic_year"],
        }
        payload.update(summarize_assessments(assessments).to_dict())
        return jsonify(payload)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to calculate promotion", exc)


@assessments_bp.get("/student/<student_id>")
def assessments_for_student(student_id: str):
    student_id_clean = clean_string(student_id)
    try:
        if not _student_exists(student_id_clean):
            return json_error("Student not found.", 404)

        cursor = get_store().get_assessments_collection().find(
            {"student_id": student_id_clean},
            sort=[("academic_year", -1), ("term", 1), ("subject", 1)],
        )
        return jsonify([serialize_assessment(doc) for doc in cursor])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list student assessments", exc)


@assessments_bp.get("/class/<class_name>/<term>/<path:academic_year>")
def assessments_for_class(class_name: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    try:
        assessments = find_term_assessments(
            get_store(),
            {"class_name": clean_string(class_name)},
            period["term"],
            period["academic_year"],
        )
        return jsonify(subject_rows(assessments))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list class assessments", exc)


@assessments_bp.get("/average/<class_name>/<term>/<path:academic_year>")
def class_average(class_name: str, term: str, academic_year: str):
    period, errors = validate_period(term, academic_year)
    if errors:
        return validation_error(errors)

    class_name_clean = clean_string(class_name)
    match_stage: Dict[str, Any] = {
        "class_name": class_name_clean,
        "term": period["term"],
        "academic_year": period["academic_year"],
        "total_score": {"$ne": None},
    }
    pipeline: List[Dict[str, Any]] = [
        {"$match": match_stage},
        {
            "$facet": {
                "overall": [
                    {
                        "$group": {
                            "_id": None,
                            "count": {"$sum": 1},
                            "average": {"$avg": "$total_score"},
                            "students": {"$addToSet": "$student_id"},
                        }
                    }
                ],
                "subjects": [
                    {
                        "$group": {
                            "_id": "$subject",
                            "count": {"$sum": 1},
                            "average": {"$avg": "$total_score"},
                            "highest": {"$max": "$total_score"},
                            "lowest": {"$min": "$total_score"},
                        }
                    },
                    {"$sort": {"_id": 1}},
                ],
            }
        },
    ]

    try:
        aggregated = list(get_store().get_assessments_collection().aggregate(pipeline))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to compute class average", exc)

    facets = aggregated[0] if aggregated else {}
    overall_docs = facets.get("overall") or []
    overall = overall_docs[0] if overall_docs else {}

    subjects: List[Dict[str, Any]] = []
    for entry in facets.get("subjects") or []:
        average = entry.get("average")
        row: Dict[str, Any] = {
            "subject": entry.get("_id"),
            "count": int(entry.get("count", 0) or 0),
            "average_score": round(average, 2) if isinstance(average, (int, float)) else None,
            "highest": format_numeric(entry.get("highest")),
            "lowest": format_numeric(entry.get("lowest")),
        }
        if row["average_score"] is not None:
            row.update(grade_for_score(row["average_score"]).to_dict())
        subjects.append(row)

    overall_average = overall.get("average")
    payload: Dict[str, Any] = {
        "class_name": class_name_clean,
        "term": period["term"],
        "academic_year": period["academic_year"],
        "assessment_count": int(overall.get("count", 0) or 0),
        "student_count": len(overall.get("students") or []),
        "average_score": (
            round(overall_average, 2) if isinstance(overall_average, (int, float)) else None
        ),
        "subjects": subjects,
    }
    if payload["average_score"] is not None:
        payload.update(grade_for_score(payload["average_score"]).to_dict())
    return jsonify(payload)


@assessments_bp.get("/<assessment_id>")
def get_assessment(assessment_id: str):
    try:
        collection = get_store().get_assessments_collection()
        document, _ = _find_assessment(collection, assessment_id)
        if not document:
            return json_error("Assessment not found.", 404)
        return jsonify(serialize_assessment(document))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load assessment", exc)


@assessments_bp.post("")
@require_admin
def create_assessment():
    cleaned, errors = validate_assessment_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return validation_error(errors)

    try:
        if not _student_exists(cleaned["student_id"]):
            return json_error(
                "Student not found.", 404, {"student_id": "Select an existing student."}
            )

        document = dict(cleaned)
        document.update(score_fields(cleaned["class_score"], cleaned["exam_score"]))

        result = get_store().get_assessments_collection().insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(
            "Recorded %s for %s (%s %s): %s",
            document["subject"],
            document["student_id"],
            document["term"],
            document["academic_year"],
            document["grade"],
        )
        return jsonify({"ok": True, "assessment": serialize_assessment(document)}), 201
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return json_error(
            "An assessment for this subject and term already exists.",
            409,
            {"subject": "Update the existing assessment instead."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to create assessment", exc)


@assessments_bp.put("/<assessment_id>")
@require_admin
def update_assessment(assessment_id: str):
    cleaned, errors = validate_assessment_payload(
        request.get_json(silent=True), require_all=False
    )

    if "student_id" in cleaned:
        errors["student_id"] = "Student cannot be changed."
        cleaned.pop("student_id", None)

    if errors:
        return validation_error(errors)

    if not cleaned:
        return json_error("No changes supplied.", 400)

    try:
        collection = get_store().get_assessments_collection()
        existing, match_filter = _find_assessment(collection, assessment_id)
        if not existing or match_filter is None:
            return json_error("Assessment not found.", 404)

        update_fields: Dict[str, Any] = dict(cleaned)
        if any(field in cleaned for field in SCORE_FIELDS):
            combined = dict(existing)
            combined.update(cleaned)
            class_score = combined.get("class_score")
            exam_score = combined.get("exam_score")
            if class_score is None or exam_score is None:
                return json_error(
                    "Both class and exam scores are needed to grade.", 400
                )
            update_fields.update(score_fields(float(class_score), float(exam_score)))

        result = collection.update_one(match_filter, {"$set": update_fields})
        if result.matched_count == 0:
            return json_error("Assessment not found.", 404)

        updated = dict(existing)
        updated.update(update_fields)
        return jsonify({"ok": True, "assessment": serialize_assessment(updated)})
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return json_error(
            "An assessment for this subject and term already exists.", 409
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to update assessment", exc)


@assessments_bp.delete("/<assessment_id>")
@require_admin
def delete_assessment(assessment_id: str):
    try:
        collection = get_store().get_assessments_collection()
        deleted = 0
        for candidate in _candidate_filters(assessment_id):
            result = collection.delete_one(candidate)
            if result.deleted_count:
                deleted = result.deleted_count
                break

        if deleted == 0:
            return json_error("Assessment not found.", 404)
        return jsonify({"ok": True})
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete assessment", exc)


__all__ = ["assessments_bp"]
