"""WSGI entry point: ``flask --app backend.app run`` or ``python backend/app.py``."""

from __future__ import annotations

import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schoolmis import create_app  # noqa: E402

app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
