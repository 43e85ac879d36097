"""Seed helper that loads sample students and assessments into MongoDB."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from pymongo.errors import PyMongoError

ROOT_DIR = Path(__file__).resolve().parent.parent
BACKEND_DIR = ROOT_DIR / "backend"
SEED_PATH = Path(__file__).resolve().parent / "seed.json"

if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schoolmis.config import ConfigError, Settings  # noqa: E402
from schoolmis.db import MongoStore  # noqa: E402
from schoolmis.validation import score_fields  # noqa: E402

logger = logging.getLogger("schoolmis.seed")


def read_seed_file(path: Path = SEED_PATH) -> Dict[str, List[Dict[str, Any]]]:
    with path.open("r", encoding="utf-8") as seed_file:
        data = json.load(seed_file)
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object of collections")
    return data


def prepare_documents(collection_name: str, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fill in derived grade fields for seeded assessments."""

    if collection_name != "assessments":
        return documents

    prepared = []
    for document in documents:
        document = dict(document)
        document.update(
            score_fields(float(document["class_score"]), float(document["exam_score"]))
        )
        prepared.append(document)
    return prepared


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    settings = Settings.from_env()
    store = MongoStore(settings)

    try:
        seed_data = read_seed_file()
        database = store.get_db()

        for collection_name, documents in seed_data.items():
            if not isinstance(documents, list):
                raise ValueError(
                    f"Seed data for collection '{collection_name}' must be a list"
                )

            collection = database[collection_name]
            collection.delete_many({})
            if documents:
                collection.insert_many(prepare_documents(collection_name, documents))

            logger.info(
                "Loaded %d document(s) into '%s' collection", len(documents), collection_name
            )

        # Create indexes on the freshly loaded collections.
        store.get_students_collection()
        store.get_assessments_collection()
        logger.info("Seeding complete for database '%s'.", settings.get_db_name())
    except ConfigError as exc:  # pragma: no cover - simple CLI utility
        logger.error("Configuration error: %s", exc)
        raise SystemExit(1)
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        logger.error("MongoDB error: %s", exc)
        raise SystemExit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
