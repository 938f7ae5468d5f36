"""Utility to clear the formal check history collection in MongoDB."""

from __future__ import annotations

import argparse

from patent_qc_app.config.logging import configure_logging, get_logger
from patent_qc_app.config.settings import get_settings
from patent_qc_app.db.history_repository import HistoryRepository

configure_logging()
LOGGER = get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Reset the formal check history")
    parser.add_argument("--force", action="store_true", help="Skip confirmation prompt")
    args = parser.parse_args()

    settings = get_settings()
    repository = HistoryRepository(settings=settings)

    doc_count = repository.collection.count_documents({})
    if doc_count == 0:
        print("History is already empty.")
        return

    if not args.force:
        message = (
            f"About to delete {doc_count} history entries from "
            f"'{settings.mongo_database}.{settings.history_collection}'. Proceed? [y/N] "
        )
        if input(message).strip().lower() not in {"y", "yes"}:
            print("Aborted.")
            return

    LOGGER.warning(
        "Clearing check history",
        extra={"database": settings.mongo_database, "collection": settings.history_collection},
    )
    print(f"Deleted {repository.clear()} entries.")


if __name__ == "__main__":
    main()
