"""Health and system configuration endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify

from ..evaluation import grade_bands, promotion_rules
from ..utils.academic import TERMS, current_academic_year, current_term

system_bp = Blueprint("system", __name__)

SERVICE_NAME = "School MIS API"
SERVICE_VERSION = "1.0.0"


@system_bp.get("/health")
@system_bp.get("/api/health")
def health():
    return jsonify(
        {
            "ok": True,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }
    )


@system_bp.get("/api/system/config")
def system_config():
    return jsonify(
        {
            "academic_year": current_academic_year(),
            "term": current_term(),
            "terms": list(TERMS),
            "grade_bands": grade_bands(),
            "promotion_rules": promotion_rules(),
        }
    )


__all__ = ["system_bp"]
