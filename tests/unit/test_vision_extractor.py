import asyncio
import random

import pytest

from conftest import FakeRenderer, ScriptedClient, build_orchestrator, make_settings, page_indices_in, prompt_text
from patent_qc_app.extraction.models import Document
from patent_qc_app.extraction.sections import SectionName
from patent_qc_app.extraction.vision import TRANSCRIPTION_PROMPT, VisionChunkExtractor
from patent_qc_app.llm.errors import InvalidCredentialError, TransientInferenceError


def _extractor(responder, **overrides):
    settings = make_settings(**overrides)
    client = ScriptedClient(responder=responder)
    orchestrator, _, _, _ = build_orchestrator(settings, client)
    renderer = FakeRenderer()
    return VisionChunkExtractor(renderer, orchestrator, settings=settings), client, renderer


def test_chunk_plan_covers_pages_contiguously() -> None:
    extractor, _, _ = _extractor(lambda model, parts: "")

    chunks = extractor.plan_chunks(12)

    assert [chunk.page_indices for chunk in chunks] == [[0, 1, 2, 3, 4], [5, 6, 7, 8, 9], [10, 11]]
    assert [chunk.chunk_index for chunk in chunks] == [0, 1, 2]
    assert extractor.plan_chunks(0) == []


def test_chunk_plan_stops_at_page_limit() -> None:
    extractor, _, _ = _extractor(lambda model, parts: "")

    chunks = extractor.plan_chunks(60)

    assert len(chunks) == 10
    assert chunks[-1].page_indices == [45, 46, 47, 48, 49]


@pytest.mark.parametrize("delays", [[0.03, 0.02, 0.01], [0.01, 0.03, 0.0]])
def test_output_order_follows_pages_not_completion(delays) -> None:
    async def responder(model, parts):
        first_page = page_indices_in(parts)[0]
        await asyncio.sleep(delays[first_page // 5])
        return f"pages-{first_page}\n"

    extractor, client, renderer = _extractor(responder)

    result = asyncio.run(extractor.extract(Document(name="doc.pdf", page_count=12)))

    assert result.text == "pages-0\n\npages-5\n\npages-10"
    assert sorted(renderer.rendered) == list(range(12))
    assert result.pages_processed == 12
    assert result.failed_chunks == []
    for call in client.calls:
        assert prompt_text(call["parts"]) == TRANSCRIPTION_PROMPT


def test_transcribed_headings_become_sections() -> None:
    responses = {
        0: "## 摘要\n本发明公开了一种散热装置。\n## 权利要求书\n1. 一种散热装置。",
        2: "2. 根据权利要求1所述的散热装置。\n## 技术领域\n本发明涉及散热。",
    }

    def responder(model, parts):
        return responses[page_indices_in(parts)[0]]

    extractor, _, _ = _extractor(responder, pages_per_chunk=2)

    result = asyncio.run(extractor.extract(Document(name="doc.pdf", page_count=4)))

    assert result.sections[SectionName.ABSTRACT] == "本发明公开了一种散热装置。"
    assert result.sections[SectionName.CLAIMS] == "1. 一种散热装置。\n\n2. 根据权利要求1所述的散热装置。"
    assert result.sections[SectionName.TECHNICAL_FIELD] == "本发明涉及散热。"
    assert result.cost > 0


def test_progress_is_reported_per_completed_chunk() -> None:
    async def responder(model, parts):
        await asyncio.sleep(random.random() / 100)
        return "text"

    extractor, _, _ = _extractor(responder)
    messages: list[str] = []

    asyncio.run(extractor.extract(Document(name="doc.pdf", page_count=12), messages.append))

    chunk_messages = [message for message in messages if message.startswith("Transcribed ")]
    assert chunk_messages == ["Transcribed 1/3 chunks", "Transcribed 2/3 chunks", "Transcribed 3/3 chunks"]


def test_failed_chunk_leaves_an_empty_slot() -> None:
    def responder(model, parts):
        first_page = page_indices_in(parts)[0]
        if first_page == 5:
            return TransientInferenceError("upstream hiccup")
        return f"pages-{first_page}"

    extractor, _, _ = _extractor(responder, max_retries=2)

    result = asyncio.run(extractor.extract(Document(name="doc.pdf", page_count=12)))

    assert result.failed_chunks == [1]
    assert result.text.split("\n\n") == ["pages-0", "", "pages-10"]


def test_invalid_credential_aborts_the_whole_extraction() -> None:
    def responder(model, parts):
        if page_indices_in(parts)[0] == 10:
            return InvalidCredentialError("API key not valid")
        return "text"

    extractor, _, _ = _extractor(responder)

    with pytest.raises(InvalidCredentialError):
        asyncio.run(extractor.extract(Document(name="doc.pdf", page_count=12)))


def test_zero_page_document_yields_empty_sections() -> None:
    extractor, client, _ = _extractor(lambda model, parts: "never called")

    result = asyncio.run(extractor.extract(Document(name="empty.pdf", page_count=0)))

    assert client.calls == []
    assert all(value == "" for value in result.sections.values())
