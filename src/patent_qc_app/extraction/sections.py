"""Patent section names and heading-based splitting."""

from __future__ import annotations

import re
from enum import Enum
from typing import Mapping


class SectionName(str, Enum):
    ABSTRACT = "摘要"
    ABSTRACT_DRAWING = "摘要附图"
    CLAIMS = "权利要求书"
    TECHNICAL_FIELD = "技术领域"
    BACKGROUND = "背景技术"
    SUMMARY = "发明内容"
    FIGURE_DESCRIPTION = "附图说明"
    EMBODIMENTS = "具体实施方式"
    DRAWINGS = "说明书附图"


SectionMap = dict[SectionName, str]

# Needed as comparison context by other categories.
CROSS_REFERENCE_SECTIONS = (SectionName.TECHNICAL_FIELD, SectionName.ABSTRACT)

_GAP = r"[ \t\u3000]*"


def _heading_pattern(title: str, *, optional_prefix: str = "") -> re.Pattern[str]:
    spaced = _GAP.join(re.escape(char) for char in title)
    prefix = ""
    if optional_prefix:
        prefix = "(?:" + _GAP.join(re.escape(char) for char in optional_prefix) + f"{_GAP})?"
    return re.compile(rf"^{_GAP}(?:#{{1,6}}{_GAP})?{prefix}{spaced}{_GAP}$", re.MULTILINE)


HEADING_PATTERNS: dict[SectionName, re.Pattern[str]] = {
    SectionName.ABSTRACT: _heading_pattern("摘要", optional_prefix="说明书"),
    SectionName.ABSTRACT_DRAWING: _heading_pattern("摘要附图"),
    SectionName.CLAIMS: _heading_pattern("权利要求书"),
    SectionName.TECHNICAL_FIELD: _heading_pattern("技术领域"),
    SectionName.BACKGROUND: _heading_pattern("背景技术"),
    SectionName.SUMMARY: _heading_pattern("发明内容"),
    SectionName.FIGURE_DESCRIPTION: _heading_pattern("附图说明"),
    SectionName.EMBODIMENTS: _heading_pattern("具体实施方式"),
    SectionName.DRAWINGS: _heading_pattern("说明书附图"),
}


def empty_section_map() -> SectionMap:
    return {name: "" for name in SectionName}


def split_sections(text: str) -> SectionMap:
    """Split a document-wide text blob into sections by heading lines.

    Each section runs from the end of its heading line to the start of the
    next heading found, or to the end of the text. Every section key is
    present in the result; missing sections map to an empty string.
    """
    found: list[tuple[int, int, SectionName]] = []
    for name, pattern in HEADING_PATTERNS.items():
        match = pattern.search(text)
        if match:
            found.append((match.start(), match.end(), name))

    found.sort(key=lambda item: item[0])

    sections: dict[SectionName, str] = {}
    for idx, (_, body_start, name) in enumerate(found):
        body_end = found[idx + 1][0] if idx + 1 < len(found) else len(text)
        sections[name] = text[body_start:body_end].strip()

    # 附图说明 and 说明书附图 are interchangeable labels.
    if sections.get(SectionName.FIGURE_DESCRIPTION) and not sections.get(SectionName.DRAWINGS):
        sections[SectionName.DRAWINGS] = sections[SectionName.FIGURE_DESCRIPTION]

    return build_section_map(sections)


def build_section_map(sections: Mapping[SectionName, str]) -> SectionMap:
    return {name: sections.get(name, "") or "" for name in SectionName}
