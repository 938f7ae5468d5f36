"""Formal check endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from patent_qc_app.checks.models import Report
from patent_qc_app.checks.pipeline import DocumentTooLargeError, FormalCheckPipeline
from patent_qc_app.db.history_repository import HistoryEntry, HistoryRepository
from patent_qc_app.llm.errors import InvalidCredentialError

router = APIRouter(prefix="/checks", tags=["checks"])


def get_history_repository() -> HistoryRepository:
    return HistoryRepository()


def get_pipeline(history: HistoryRepository = Depends(get_history_repository)) -> FormalCheckPipeline:
    return FormalCheckPipeline(history=history)


@router.post("", response_model=Report)
async def run_formal_check(
    file: UploadFile = File(..., description="Patent application PDF"),
    categories: List[str] | None = Form(default=None, description="Restrict the check to these categories"),
    strategy: str | None = Form(default=None, description="Extraction strategy: vision or structural"),
    pipeline: FormalCheckPipeline = Depends(get_pipeline),
) -> Report:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    try:
        return await pipeline.run(
            content,
            file_name=file.filename,
            categories=categories or None,
            strategy=strategy,
        )
    except DocumentTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except InvalidCredentialError as exc:
        raise HTTPException(status_code=502, detail=f"Inference credential rejected: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/history", response_model=List[HistoryEntry])
def list_history(repository: HistoryRepository = Depends(get_history_repository)) -> List[HistoryEntry]:
    """Most recent check runs, newest first."""
    return repository.list_entries()
