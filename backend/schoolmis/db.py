"""MongoDB helpers for the application."""

from __future__ import annotations

from typing import Any, Dict

from pymongo import ASCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from .config import Settings


class MongoStore:
    """Lazily connected MongoDB handle bound to one :class:`Settings` value."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: MongoClient | None = None
        self._db: Database | None = None
        self._students_indexes_created = False
        self._assessments_indexes_created = False

    def _get_client(self) -> MongoClient:
        if self._client is None:
            self._client = MongoClient(
                self.settings.get_mongo_uri(), serverSelectionTimeoutMS=5000
            )
        return self._client

    def get_db(self) -> Database:
        """Return the application's MongoDB database instance."""

        if self._db is None:
            self._db = self._get_client()[self.settings.get_db_name()]
        return self._db

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None

    def _ensure_students_indexes(self, collection: Collection) -> None:
        if self._students_indexes_created:
            return

        collection.create_indexes(
            [
                IndexModel(
                    [("email", ASCENDING)],
                    name="unique_email",
                    unique=True,
                    sparse=True,
                ),
                IndexModel(
                    [("class_name", ASCENDING), ("full_name", ASCENDING)],
                    name="class_full_name",
                    background=True,
                ),
                IndexModel(
                    [("programme", ASCENDING)],
                    name="programme_idx",
                    background=True,
                ),
                IndexModel(
                    [("full_name", ASCENDING)],
                    name="full_name_asc",
                    background=True,
                ),
            ]
        )
        self._students_indexes_created = True

    def get_students_collection(self) -> Collection:
        """Return the collection that stores student documents."""

        collection = self.get_db()["students"]
        self._ensure_students_indexes(collection)
        return collection

    def _ensure_assessments_indexes(self, collection: Collection) -> None:
        if self._assessments_indexes_created:
            return

        collection.create_indexes(
            [
                IndexModel(
                    [
                        ("student_id", ASCENDING),
                        ("subject", ASCENDING),
                        ("term", ASCENDING),
                        ("academic_year", ASCENDING),
                    ],
                    name="unique_student_subject_term",
                    unique=True,
                ),
                IndexModel(
                    [
                        ("class_name", ASCENDING),
                        ("term", ASCENDING),
                        ("academic_year", ASCENDING),
                    ],
                    name="class_term_year",
                    background=True,
                ),
            ]
        )
        self._assessments_indexes_created = True

    def get_assessments_collection(self) -> Collection:
        """Return the assessments collection ensuring indexes exist."""

        collection = self.get_db()["assessments"]
        self._ensure_assessments_indexes(collection)
        return collection


def _number_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def serialize_student(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a MongoDB student document into a JSON-serialisable dict."""

    student = {
        "_id": str(document.get("_id", "")),
        "full_name": document.get("full_name"),
        "gender": document.get("gender"),
        "class_name": document.get("class_name"),
        "programme": document.get("programme"),
    }

    for optional in ("email", "date_of_birth", "guardian_name", "guardian_phone"):
        if optional in document:
            student[optional] = document.get(optional)

    return student


def serialize_assessment(document: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize an assessment document for JSON responses."""

    return {
        "_id": str(document.get("_id", "")),
        "student_id": document.get("student_id"),
        "subject": document.get("subject"),
        "class_name": document.get("class_name"),
        "term": document.get("term"),
        "academic_year": document.get("academic_year"),
        "class_score": _number_or_none(document.get("class_score")),
        "exam_score": _number_or_none(document.get("exam_score")),
        "total_score": _number_or_none(document.get("total_score")),
        "grade": document.get("grade"),
        "remark": document.get("remark"),
    }


__all__ = ["MongoStore", "serialize_assessment", "serialize_student"]
