"""Parallel image-to-text extraction through the inference orchestrator."""

from __future__ import annotations

import asyncio

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.extraction.models import Document, ExtractionChunk, ExtractionResult, ProgressCallback
from patent_qc_app.extraction.page_renderer import PageRenderer
from patent_qc_app.extraction.sections import split_sections
from patent_qc_app.llm.errors import InvalidCredentialError
from patent_qc_app.llm.models import InferenceOutcome, InferenceRequest, InlineDataPart, TextPart
from patent_qc_app.llm.orchestrator import InferenceOrchestrator

LOGGER = get_logger(__name__)

TRANSCRIPTION_PROMPT = """# 角色任务
你是一个高精度的专利文档数字化专家。请将提供的专利文档页面图片转换为结构化的Markdown文本。

# 核心要求
1. 公式还原：识别所有数学公式、化学式和变量，转换为LaTeX格式并用单个美元符号包裹（例如 `$E=mc^2$`），注意上下标、希腊字母和特殊符号。
2. 结构保留：保留标准的专利章节标题（摘要、权利要求书、技术领域、背景技术、发明内容、附图说明、具体实施方式），标题单独成行并使用Markdown二级标题（##）。去除页眉、页脚和行号。
3. 内容完整：按顺序输出图片中的全部文字，不要摘要或省略，不要添加任何引导语。
"""

IMAGE_MIME_TYPE = "image/jpeg"


class VisionChunkExtractor:
    """Transcribe page images chunk by chunk, all chunks in flight at once."""

    def __init__(
        self,
        renderer: PageRenderer,
        orchestrator: InferenceOrchestrator,
        *,
        settings: AppSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.renderer = renderer
        self.orchestrator = orchestrator

    def plan_chunks(self, page_count: int) -> list[ExtractionChunk]:
        page_total = min(page_count, self.settings.max_pages)
        size = max(1, self.settings.pages_per_chunk)
        return [
            ExtractionChunk(chunk_index=idx, page_indices=list(range(start, min(start + size, page_total))))
            for idx, start in enumerate(range(0, page_total, size))
        ]

    async def extract(self, document: Document, on_progress: ProgressCallback | None = None) -> ExtractionResult:
        chunks = self.plan_chunks(document.page_count)
        progress = on_progress or (lambda message: None)
        if not chunks:
            return ExtractionResult(sections=split_sections(""))

        progress(f"Transcribing {sum(len(c.page_indices) for c in chunks)} pages in {len(chunks)} parallel chunks")

        # Slots are indexed by chunk so output order never depends on completion order.
        chunk_texts = [""] * len(chunks)
        completed = 0
        render_lock = asyncio.Lock()

        async def run_chunk(chunk: ExtractionChunk) -> InferenceOutcome:
            nonlocal completed
            outcome = await self._process_chunk(document, chunk, render_lock)
            chunk_texts[chunk.chunk_index] = outcome.text.strip()
            completed += 1
            progress(f"Transcribed {completed}/{len(chunks)} chunks")
            return outcome

        results = await asyncio.gather(*(run_chunk(chunk) for chunk in chunks), return_exceptions=True)

        total_cost = 0.0
        failed: list[int] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, InvalidCredentialError):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed.append(chunk.chunk_index)
                LOGGER.warning(
                    "Chunk transcription failed, continuing without it",
                    extra={"document": document.name, "chunk": chunk.chunk_index, "error": str(result)},
                )
                continue
            total_cost += result.cost

        text = "\n\n".join(chunk_texts)
        progress("Transcription complete, splitting sections")
        LOGGER.info(
            "Vision extraction finished",
            extra={"document": document.name, "chunks": len(chunks), "failed": failed, "cost": total_cost},
        )
        return ExtractionResult(
            sections=split_sections(text),
            text=text,
            cost=total_cost,
            pages_processed=sum(len(chunk.page_indices) for chunk in chunks),
            failed_chunks=failed,
        )

    async def _process_chunk(
        self,
        document: Document,
        chunk: ExtractionChunk,
        render_lock: asyncio.Lock,
    ) -> InferenceOutcome:
        images = await asyncio.gather(
            *(self._render_page(document, index, render_lock) for index in chunk.page_indices)
        )
        request = InferenceRequest.from_parts(
            [TextPart(text=TRANSCRIPTION_PROMPT), *images],
            label=f"transcribe:{document.name}:chunk{chunk.chunk_index}",
        )
        return await self.orchestrator.submit(request)

    async def _render_page(self, document: Document, index: int, render_lock: asyncio.Lock) -> InlineDataPart:
        # The PDF backend is not thread-safe; renders run off-loop one at a time.
        async with render_lock:
            data = await asyncio.to_thread(self.renderer.render_image, document, index, self.settings.render_scale)
        return InlineDataPart(mime_type=IMAGE_MIME_TYPE, data=data)
