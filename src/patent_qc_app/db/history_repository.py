"""Capped history of formal check runs stored in MongoDB."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pymongo import DESCENDING
from pymongo.collection import Collection

from patent_qc_app.checks.models import Report
from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.db.mongo_client import get_database

LOGGER = get_logger(__name__)


class HistoryEntry(BaseModel):
    entry_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    file_name: str
    report: Report
    total_cost: float = 0.0


class HistoryRepository:
    """Append-only run history, newest first, capped at ``history_limit`` entries."""

    def __init__(self, *, settings: AppSettings | None = None, collection: Collection[Any] | None = None) -> None:
        self.settings = settings or get_settings()
        if collection is None:
            db = get_database(self.settings.mongo_database, settings=self.settings)
            collection = db[self.settings.history_collection]
            collection.create_index([("created_at", DESCENDING)])
        self.collection = collection
        self.limit = self.settings.history_limit

    def append(self, entry: HistoryEntry) -> None:
        document = entry.model_dump(mode="json")
        document["created_at"] = entry.created_at
        LOGGER.info("Saving check history entry", extra={"entry_id": entry.entry_id, "file": entry.file_name})
        self.collection.insert_one(document)
        self._prune()

    def list_entries(self) -> list[HistoryEntry]:
        documents = list(self.collection.find({}, {"_id": 0}).sort("created_at", DESCENDING).limit(self.limit))
        try:
            return [HistoryEntry.model_validate(document) for document in documents]
        except ValidationError as exc:
            # Partial recovery is not attempted.
            LOGGER.warning("Corrupt check history found, clearing it", extra={"error": str(exc)})
            self.clear()
            return []

    def clear(self) -> int:
        result = self.collection.delete_many({})
        LOGGER.info(
            "Cleared check history",
            extra={"collection": self.settings.history_collection, "deleted": result.deleted_count},
        )
        return result.deleted_count

    def _prune(self) -> None:
        cursor = self.collection.find({}, {"_id": 1}).sort("created_at", DESCENDING).skip(self.limit)
        stale = [document["_id"] for document in cursor]
        if stale:
            self.collection.delete_many({"_id": {"$in": stale}})
