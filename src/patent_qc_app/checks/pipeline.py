"""End-to-end formal check of one patent document."""

from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path
from typing import Callable

from pymongo.errors import PyMongoError

from patent_qc_app.checks.aggregator import ParallelAggregator
from patent_qc_app.checks.category_checker import CategoryChecker
from patent_qc_app.checks.models import CheckRunState, Report
from patent_qc_app.checks.rules import categories_for
from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.db.history_repository import HistoryEntry, HistoryRepository
from patent_qc_app.extraction.models import Document, ExtractionResult, ProgressCallback, SectionExtractor
from patent_qc_app.extraction.page_renderer import PageRenderer, PdfPlumberPageRenderer, open_pdf_document
from patent_qc_app.extraction.sections import empty_section_map
from patent_qc_app.extraction.structural import StructuralExtractor
from patent_qc_app.extraction.vision import VisionChunkExtractor
from patent_qc_app.llm.errors import InvalidCredentialError
from patent_qc_app.llm.orchestrator import InferenceOrchestrator, get_orchestrator

LOGGER = get_logger(__name__)

EXTRACTION_STRATEGIES = ("vision", "structural")

DocumentOpener = Callable[..., AbstractContextManager[Document]]


class DocumentTooLargeError(ValueError):
    """The uploaded document exceeds the configured size limit."""


class FormalCheckPipeline:
    """Extract sections, check every category and record the run."""

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        orchestrator: InferenceOrchestrator | None = None,
        renderer: PageRenderer | None = None,
        history: HistoryRepository | None = None,
        opener: DocumentOpener = open_pdf_document,
    ) -> None:
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator or get_orchestrator()
        self.renderer = renderer or PdfPlumberPageRenderer(jpeg_quality=self.settings.jpeg_quality)
        self.history = history
        self.opener = opener
        self.aggregator = ParallelAggregator(CategoryChecker(self.orchestrator, settings=self.settings))
        self.state = CheckRunState.IDLE

    def build_extractor(self, strategy: str | None = None) -> SectionExtractor:
        strategy = strategy or self.settings.extraction_strategy
        if strategy == "vision":
            return VisionChunkExtractor(self.renderer, self.orchestrator, settings=self.settings)
        if strategy == "structural":
            return StructuralExtractor(self.renderer, settings=self.settings)
        raise ValueError(f"Unsupported extraction strategy: {strategy}")

    def validate_size(self, source: Path | bytes) -> None:
        size = len(source) if isinstance(source, (bytes, bytearray)) else source.stat().st_size
        if size > self.settings.max_file_size_bytes:
            raise DocumentTooLargeError(
                f"Document is {size / 1024 / 1024:.1f} MB, the limit is {self.settings.max_file_size_mb} MB"
            )

    async def run(
        self,
        source: Path | bytes,
        *,
        file_name: str | None = None,
        categories: list[str] | None = None,
        strategy: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Report:
        selected = categories_for(categories)
        extractor = self.build_extractor(strategy)
        self.validate_size(source)
        name = file_name or (source.name if isinstance(source, Path) else "upload.pdf")

        def progress(message: str) -> None:
            LOGGER.info(message, extra={"document": name, "state": self.state.value})
            if on_progress:
                on_progress(message)

        try:
            self._transition(CheckRunState.EXTRACTING)
            extraction = await self._extract(extractor, source, name, progress)

            self._transition(CheckRunState.CHECKING)
            report = await self.aggregator.run_all(
                extraction.sections,
                selected,
                progress,
                on_aggregate=lambda: self._transition(CheckRunState.AGGREGATING),
            )
        except Exception:
            self._transition(CheckRunState.FAILED)
            raise

        report = report.model_copy(update={"total_cost": report.total_cost + extraction.cost})
        self._transition(report.state)
        self._record(name, report)
        return report

    async def _extract(
        self,
        extractor: SectionExtractor,
        source: Path | bytes,
        name: str,
        progress: ProgressCallback,
    ) -> ExtractionResult:
        """Extract sections, degrading to an empty section map on any document failure."""
        try:
            with self.opener(source, name=name) as document:
                progress(f"Loaded {document.page_count} pages")
                return await extractor.extract(document, progress)
        except InvalidCredentialError:
            raise
        except Exception as exc:
            LOGGER.warning(
                "Section extraction failed, continuing with empty sections",
                extra={"document": name, "error": str(exc)},
            )
            return ExtractionResult(sections=empty_section_map())

    def _transition(self, state: CheckRunState) -> None:
        LOGGER.debug("Check run state change", extra={"from": self.state.value, "to": state.value})
        self.state = state

    def _record(self, file_name: str, report: Report) -> None:
        if self.history is None:
            return
        try:
            self.history.append(HistoryEntry(file_name=file_name, report=report, total_cost=report.total_cost))
        except PyMongoError as exc:
            LOGGER.error("Failed to save check history", extra={"file": file_name, "error": str(exc)})
