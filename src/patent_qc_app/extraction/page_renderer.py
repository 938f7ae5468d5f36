"""Page access and rasterisation backed by pdfplumber."""

from __future__ import annotations

import io
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

import pdfplumber

from patent_qc_app.config.logging import get_logger
from patent_qc_app.extraction.models import Document, PageContent, TextToken

LOGGER = get_logger(__name__)


class PageRenderer(Protocol):
    def get_page(self, document: Document, index: int) -> PageContent:
        ...

    def render_image(self, document: Document, index: int, scale: float) -> bytes:
        ...


class PdfPlumberPageRenderer:
    """Read positioned words and JPEG renders from a pdfplumber document."""

    WORD_TOLERANCE_X = 1.5
    WORD_TOLERANCE_Y = 1.0

    def __init__(self, *, jpeg_quality: int = 85) -> None:
        self.jpeg_quality = jpeg_quality

    def get_page(self, document: Document, index: int) -> PageContent:
        page = document.handle.pages[index]
        words = page.extract_words(
            x_tolerance=self.WORD_TOLERANCE_X,
            y_tolerance=self.WORD_TOLERANCE_Y,
            keep_blank_chars=False,
        )

        tokens = [
            TextToken(text=word.get("text", ""), x=float(word.get("x0", 0.0)), y=float(word.get("top", 0.0)))
            for word in words
            if word.get("text")
        ]
        return PageContent(index=index, tokens=tokens, height=float(page.height))

    def render_image(self, document: Document, index: int, scale: float) -> bytes:
        page = document.handle.pages[index]
        image = page.to_image(resolution=int(72 * scale)).original.convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()


@contextmanager
def open_pdf_document(source: Path | bytes, *, name: str | None = None) -> Iterator[Document]:
    """Open a PDF for the duration of one extraction.

    A file that cannot be parsed, including one whose page tree is broken,
    yields a zero-page document, so extraction degrades to empty sections
    instead of failing.
    """
    label = name or (source.name if isinstance(source, Path) else "upload.pdf")
    stream = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        pdf = pdfplumber.open(stream)
    except Exception as exc:
        LOGGER.warning("Unable to open PDF", extra={"document": label, "error": str(exc)})
        yield Document(name=label, page_count=0)
        return

    with pdf:
        try:
            page_count = len(pdf.pages)
        except Exception as exc:
            LOGGER.warning("Unable to read PDF page tree", extra={"document": label, "error": str(exc)})
            page_count = 0
        yield Document(name=label, page_count=page_count, handle=pdf if page_count else None)
