"""Integration test for the check history store against a live MongoDB."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import PyMongoError

from conftest import make_settings
from patent_qc_app.checks.models import CategoryResult, Report
from patent_qc_app.config.settings import get_settings
from patent_qc_app.db.history_repository import HistoryEntry, HistoryRepository
from patent_qc_app.db.mongo_client import get_mongo_client

pytestmark = pytest.mark.integration


@pytest.fixture
def repository():
    base = get_settings()
    settings = make_settings(
        mongodb_uri=base.mongodb_uri,
        mongodb_user=base.mongodb_user,
        mongodb_password=base.mongodb_password,
        history_collection="formal_check_history_test",
        history_limit=3,
    )
    try:
        get_mongo_client(settings).admin.command("ping")
    except PyMongoError as exc:
        pytest.skip(f"MongoDB not reachable: {exc}")

    repo = HistoryRepository(settings=settings)
    repo.clear()
    yield repo
    repo.clear()


def test_history_round_trip_is_capped(repository: HistoryRepository) -> None:
    start = datetime.now(timezone.utc)
    for idx in range(5):
        repository.append(
            HistoryEntry(
                file_name=f"doc-{idx}.pdf",
                report=Report(results=[CategoryResult(category="摘要")]),
                created_at=start + timedelta(seconds=idx),
            )
        )

    entries = repository.list_entries()

    assert [entry.file_name for entry in entries] == ["doc-4.pdf", "doc-3.pdf", "doc-2.pdf"]
