"""Student register endpoints."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import ConfigError
from ..db import serialize_student
from ..utils.paging import (
    PagingParamError,
    page_window,
    parse_limit_arg,
    parse_paging_params,
)
from ..validation import clean_string, validate_student_payload
from .auth_simple import require_admin
from .common import (
    get_store,
    handle_config_error,
    handle_db_error,
    json_error,
    validation_error,
)

students_bp = Blueprint("students", __name__, url_prefix="/api/students")

logger = logging.getLogger(__name__)

STUDENT_PROJECTION = {
    "_id": 1,
    "full_name": 1,
    "gender": 1,
    "class_name": 1,
    "programme": 1,
    "email": 1,
    "date_of_birth": 1,
    "guardian_name": 1,
    "guardian_phone": 1,
}

SORT_FIELDS = {
    "full_name": "full_name",
    "class_name": "class_name",
    "programme": "programme",
}


def _text_filter(query: str) -> Dict[str, Any]:
    pattern = re.escape(query)
    return {
        "$or": [
            {"full_name": {"$regex": pattern, "$options": "i"}},
            {"_id": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    }


def _list_by(filters: Dict[str, Any], action: str):
    try:
        limit_value = parse_limit_arg(request.args.get("limit"), default=200)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    try:
        cursor = (
            get_store()
            .get_students_collection()
            .find(filters, projection=STUDENT_PROJECTION, sort=[("full_name", 1)])
            .limit(limit_value)
        )
        return jsonify([serialize_student(doc) for doc in cursor])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error(action, exc)


@students_bp.get("")
def list_students():
    try:
        paging = parse_paging_params(
            request.args,
            allowed_sort_fields=SORT_FIELDS,
            default_sort="full_name",
        )
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    filters: Dict[str, Any] = {}
    query = clean_string(request.args.get("q"))
    class_name = clean_string(request.args.get("class_name"))
    programme = clean_string(request.args.get("programme"))

    if query:
        filters.update(_text_filter(query))
    if class_name:
        filters["class_name"] = class_name
    if programme:
        filters["programme"] = programme

    try:
        collection = get_store().get_students_collection()
        window = page_window(paging, collection.count_documents(filters))

        cursor = (
            collection.find(filters, projection=STUDENT_PROJECTION)
            .sort([paging.sort])
            .skip(window.skip)
            .limit(window.page_size)
        )
        return jsonify(window.envelope([serialize_student(doc) for doc in cursor]))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list students", exc)


@students_bp.get("/search")
def search_students():
    query = clean_string(request.args.get("q"))
    if not query:
        return json_error("Search query is required.", 400, {"q": "Enter a name or ID."})
    return _list_by(_text_filter(query), "Failed to search students")


@students_bp.get("/class/<class_name>")
def students_by_class(class_name: str):
    return _list_by({"class_name": clean_string(class_name)}, "Failed to list class students")


@students_bp.get("/programme/<programme>")
def students_by_programme(programme: str):
    return _list_by(
        {"programme": clean_string(programme)}, "Failed to list programme students"
    )


@students_bp.get("/<student_id>")
def get_student(student_id: str):
    try:
        document = get_store().get_students_collection().find_one(
            {"_id": clean_string(student_id)}, projection=STUDENT_PROJECTION
        )
        if not document:
            return json_error("Student not found.", 404)
        return jsonify(serialize_student(document))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load student", exc)


@students_bp.post("")
@require_admin
def create_student():
    cleaned, errors = validate_student_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return validation_error(errors)

    try:
        get_store().get_students_collection().insert_one(cleaned)
        logger.info("Created student %s", cleaned["_id"])
        return jsonify({"ok": True, "student": serialize_student(cleaned)}), 201
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        logger.exception("Duplicate key error while creating student")
        return json_error(
            "A student with this ID or email already exists.",
            409,
            {"_id": "Student ID or email already in use."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to create student", exc)


@students_bp.put("/<student_id>")
@require_admin
def update_student(student_id: str):
    student_id = clean_string(student_id)
    cleaned, errors = validate_student_payload(
        request.get_json(silent=True), require_all=False
    )

    if "_id" in cleaned:
        if cleaned["_id"] != student_id:
            errors["_id"] = "Student ID cannot be changed."
        cleaned.pop("_id", None)

    if errors:
        return validation_error(errors)

    if not cleaned:
        return json_error("No changes supplied.", 400)

    try:
        collection = get_store().get_students_collection()
        result = collection.update_one({"_id": student_id}, {"$set": cleaned})
        if result.matched_count == 0:
            return json_error("Student not found.", 404)
        return jsonify({"ok": True})
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        logger.exception("Duplicate key error while updating student")
        return json_error(
            "A student with this email already exists.",
            409,
            {"email": "Email already in use."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to update student", exc)


@students_bp.delete("/<student_id>")
@require_admin
def delete_student(student_id: str):
    student_id_clean = clean_string(student_id)
    try:
        store = get_store()
        students_collection = store.get_students_collection()
        if not students_collection.find_one({"_id": student_id_clean}, projection={"_id": 1}):
            return json_error("Student not found.", 404)

        # Assessments are removed before the student they belong to.
        removed = store.get_assessments_collection().delete_many(
            {"student_id": student_id_clean}
        )
        result = students_collection.delete_one({"_id": student_id_clean})
        if result.deleted_count == 0:
            logger.warning(
                "Student %s vanished after %d assessment(s) were deleted",
                student_id_clean,
                removed.deleted_count,
            )
            return json_error("Student not found.", 404)

        logger.info(
            "Deleted student %s and %d assessment(s)",
            student_id_clean,
            removed.deleted_count,
        )
        return jsonify({"ok": True, "assessments_deleted": removed.deleted_count})
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete student", exc)


__all__ = ["students_bp"]
