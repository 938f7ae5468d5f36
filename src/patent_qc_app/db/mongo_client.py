"""MongoDB client utilities for the check history store."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pymongo import MongoClient
from pymongo.database import Database

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings

LOGGER = get_logger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 5000


def build_mongo_uri(settings: AppSettings) -> str:
    """Construct a MongoDB URI, adding credentials only when configured."""
    uri = settings.mongodb_uri
    if uri.startswith(("mongodb://", "mongodb+srv://")):
        return uri
    if settings.mongodb_user:
        return f"mongodb://{settings.mongodb_user}:{settings.mongodb_password}@{uri}"  # noqa: S608
    return f"mongodb://{uri}"


@lru_cache(maxsize=1)
def _cached_client(uri: str) -> MongoClient[Any]:
    return MongoClient(uri, tz_aware=True, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)


def get_mongo_client(settings: AppSettings | None = None) -> MongoClient[Any]:
    """Return a MongoDB client, caching globally when no settings override is provided."""
    cfg = settings or get_settings()
    uri = build_mongo_uri(cfg)
    LOGGER.info("Connecting to MongoDB", extra={"uri": cfg.sanitize_uri(uri)})

    if settings is None:
        return _cached_client(uri)
    return MongoClient(uri, tz_aware=True, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)


def get_database(name: str, *, settings: AppSettings | None = None) -> Database[Any]:
    """Convenience accessor for a specific MongoDB database."""
    return get_mongo_client(settings).get_database(name)
