"""Application route blueprints and helpers."""

from .assessments import assessments_bp
from .auth_simple import auth_simple_bp, require_admin
from .reports import reports_bp
from .students import students_bp
from .system import system_bp

BLUEPRINTS = (system_bp, auth_simple_bp, students_bp, assessments_bp, reports_bp)

__all__ = [
    "BLUEPRINTS",
    "assessments_bp",
    "auth_simple_bp",
    "reports_bp",
    "require_admin",
    "students_bp",
    "system_bp",
]
