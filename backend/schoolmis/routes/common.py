"""Helpers shared by the route blueprints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import current_app, jsonify
from pymongo.errors import PyMongoError

from ..config import ConfigError, Settings
from ..db import MongoStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "SCHOOLMIS_SETTINGS"
STORE_EXTENSION = "schoolmis.store"


def get_settings() -> Settings:
    return current_app.config[SETTINGS_KEY]


def get_store() -> MongoStore:
    return current_app.extensions[STORE_EXTENSION]


def json_error(message: str, status: int, details: Dict[str, Any] | None = None):
    payload: Dict[str, Any] = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def validation_error(errors: Dict[str, str]):
    details = {k: v for k, v in errors.items() if k != "_global"}
    message = errors.get("_global", "Validation failed.")
    return json_error(message, 400, details if details else None)


def handle_config_error(exc: ConfigError):
    logger.exception("Missing configuration for MongoDB")
    return json_error(str(exc), 500)


def handle_db_error(action: str, exc: PyMongoError):
    logger.exception("%s due to MongoDB error", action)
    return json_error("Database unavailable. Please try again later.", 503)


def format_numeric(value: float | int | None) -> float | int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    number = float(value)
    if abs(number - round(number)) < 1e-9:
        return int(round(number))
    return round(number, 2)


__all__ = [
    "SETTINGS_KEY",
    "STORE_EXTENSION",
    "format_numeric",
    "get_settings",
    "get_store",
    "handle_config_error",
    "handle_db_error",
    "json_error",
    "validation_error",
]
