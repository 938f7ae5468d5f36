import asyncio

from conftest import FakeRenderer, make_settings, page_from_lines
from patent_qc_app.extraction.models import Document
from patent_qc_app.extraction.sections import SectionName
from patent_qc_app.extraction.structural import StructuralExtractor


def _two_page_renderer() -> FakeRenderer:
    first = page_from_lines(
        0,
        [
            (20.0, "CN 112345678 A"),
            (100.0, "摘 要"),
            (120.2, "本发明公开了一种散热装置，"),
            (140.0, "结构简单。"),
            (160.0, "权利要求书"),
            (180.0, "1. 一种散热装置，包括壳体。"),
            (780.0, "1"),
        ],
    )
    second = page_from_lines(
        1,
        [
            (30.0, "说明书 1/2 页"),
            (100.0, "2. 根据权利要求1所述的装置，还包括风扇。"),
            (120.0, "技术领域"),
            (140.0, "[0001] 本发明涉及散热技术领域。"),
            (775.0, "第 2 页 共 2 页"),
        ],
    )
    return FakeRenderer([first, second])


def test_two_page_document_is_split_into_sections() -> None:
    extractor = StructuralExtractor(_two_page_renderer(), settings=make_settings())
    progress: list[str] = []

    result = asyncio.run(extractor.extract(Document(name="sample.pdf", page_count=2), progress.append))

    assert result.sections[SectionName.ABSTRACT] == "本发明公开了一种散热装置，\n结构简单。"
    assert result.sections[SectionName.CLAIMS] == (
        "1. 一种散热装置，包括壳体。\n\n2. 根据权利要求1所述的装置，还包括风扇。"
    )
    assert result.sections[SectionName.TECHNICAL_FIELD] == "本发明涉及散热技术领域。"
    assert result.pages_processed == 2
    assert result.cost == 0
    assert progress == ["Read page 1/2", "Read page 2/2"]


def test_running_headers_and_page_numbers_are_dropped() -> None:
    result = asyncio.run(
        StructuralExtractor(_two_page_renderer(), settings=make_settings()).extract(
            Document(name="sample.pdf", page_count=2)
        )
    )

    assert "CN 112345678 A" not in result.text
    assert "1/2 页" not in result.text
    assert "第 2 页" not in result.text
    assert not any(line.strip() == "1" for line in result.text.splitlines())


def test_page_number_lookalike_in_body_is_kept() -> None:
    page = page_from_lines(0, [(400.0, "2024")])
    extractor = StructuralExtractor(FakeRenderer([page]), settings=make_settings())

    assert extractor.page_text(page) == "2024"


def test_tokens_on_the_same_line_are_ordered_left_to_right() -> None:
    page = page_from_lines(0, [(200.0, "left middle right")])
    page.tokens.reverse()
    page.tokens[0].y = 200.3
    page.tokens[1].y = 199.8
    extractor = StructuralExtractor(FakeRenderer([page]), settings=make_settings())

    assert extractor.page_text(page) == "left middle right"


def test_pages_beyond_the_limit_are_ignored() -> None:
    pages = [page_from_lines(index, [(300.0, f"第{index}段")]) for index in range(4)]
    extractor = StructuralExtractor(FakeRenderer(pages), settings=make_settings(max_pages=2))

    text, processed = extractor.extract_text(Document(name="long.pdf", page_count=4))

    assert processed == 2
    assert text == "第0段\n\n第1段"


def test_unreadable_document_yields_empty_sections() -> None:
    class BrokenRenderer(FakeRenderer):
        def get_page(self, document, index):
            raise ValueError("damaged xref table")

    extractor = StructuralExtractor(BrokenRenderer(), settings=make_settings())

    result = asyncio.run(extractor.extract(Document(name="broken.pdf", page_count=3)))

    assert set(result.sections) == set(SectionName)
    assert all(value == "" for value in result.sections.values())
