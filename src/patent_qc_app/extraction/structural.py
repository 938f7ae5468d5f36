"""Layout-based section extraction from positioned text tokens."""

from __future__ import annotations

import re
from collections import OrderedDict

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.extraction.models import Document, ExtractionResult, PageContent, ProgressCallback, TextToken
from patent_qc_app.extraction.page_renderer import PageRenderer
from patent_qc_app.extraction.sections import empty_section_map, split_sections

LOGGER = get_logger(__name__)

NOISE_PATTERNS = (
    re.compile(r"^\d+$"),
    re.compile(r"^-\s*\d+\s*-$"),
    re.compile(r"^page\s*\d+(\s*(of|/)\s*\d+)?$", re.IGNORECASE),
    re.compile(r"^第\s*\d+\s*页(\s*[/,，]?\s*共\s*\d+\s*页)?$"),
    re.compile(r"^(?:说\s*明\s*书(?:\s*(?:摘\s*要|附\s*图))?|权\s*利\s*要\s*求\s*书)?\s*\d+\s*/\s*\d+\s*页$"),
    re.compile(r"^(CN|EP|US|WO)\s*\d[\d\s]*[A-Z]\d?(\s+\d+)*$"),
    re.compile(r"^(CN|EP|US|WO)\s*\d[\d\s]*[A-Z]\d?\s+\S.*\d+\s*/\s*\d+\s*页$"),
)
PARAGRAPH_NUMBER_PATTERN = re.compile(r"^\s*(?:\[\d{4}\]|【\d{4}】|\d{4}(?=\s))\s*")


class StructuralExtractor:
    """Rebuild page text from word positions, drop running headers, split sections."""

    def __init__(self, renderer: PageRenderer, *, settings: AppSettings | None = None) -> None:
        self.settings = settings or get_settings()
        self.renderer = renderer

    async def extract(self, document: Document, on_progress: ProgressCallback | None = None) -> ExtractionResult:
        try:
            text, pages_processed = self.extract_text(document, on_progress)
        except Exception as exc:
            LOGGER.warning("Structural extraction failed", extra={"document": document.name, "error": str(exc)})
            return ExtractionResult(sections=empty_section_map())

        return ExtractionResult(sections=split_sections(text), text=text, pages_processed=pages_processed)

    def extract_text(self, document: Document, on_progress: ProgressCallback | None = None) -> tuple[str, int]:
        page_total = min(document.page_count, self.settings.max_pages)
        page_texts: list[str] = []
        for index in range(page_total):
            page = self.renderer.get_page(document, index)
            page_text = self.page_text(page)
            if page_text:
                page_texts.append(page_text)
            if on_progress:
                on_progress(f"Read page {index + 1}/{page_total}")

        LOGGER.info("Extracted document text", extra={"document": document.name, "pages": page_total})
        return "\n\n".join(page_texts).strip(), page_total

    def page_text(self, page: PageContent) -> str:
        lines: list[str] = []
        for top, tokens in self._group_lines(page.tokens).items():
            text = " ".join(token.text for token in tokens).strip()
            if not text or self._is_margin_noise(top, text, page.height):
                continue
            text = PARAGRAPH_NUMBER_PATTERN.sub("", text).strip()
            if text:
                lines.append(text)
        return "\n".join(lines)

    @staticmethod
    def _group_lines(tokens: list[TextToken]) -> "OrderedDict[int, list[TextToken]]":
        grouped: dict[int, list[TextToken]] = {}
        for token in tokens:
            grouped.setdefault(round(token.y), []).append(token)

        lines: "OrderedDict[int, list[TextToken]]" = OrderedDict()
        for top in sorted(grouped):
            lines[top] = sorted(grouped[top], key=lambda token: token.x)
        return lines

    def _is_margin_noise(self, top: float, text: str, height: float) -> bool:
        band = height * self.settings.margin_ratio
        if band < top < height - band:
            return False
        return any(pattern.match(text) for pattern in NOISE_PATTERNS)
