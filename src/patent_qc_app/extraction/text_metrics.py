"""Deterministic text measurements used by length-limited rules."""

from __future__ import annotations

import re

INLINE_FORMULA_PATTERN = re.compile(r"\$[^$]+\$")
FORMULA_PLACEHOLDER = "F"
INVISIBLE_PATTERN = re.compile(r"[\s\u200b-\u200d\ufeff]")


def count_characters(text: str) -> int:
    """Count characters with each ``$...$`` formula as one unit, ignoring whitespace."""
    if not text:
        return 0
    collapsed = INLINE_FORMULA_PATTERN.sub(FORMULA_PLACEHOLDER, text)
    return len(INVISIBLE_PATTERN.sub("", collapsed))
