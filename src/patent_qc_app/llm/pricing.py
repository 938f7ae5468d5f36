"""Per-call cost estimation and input size accounting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from patent_qc_app.config.settings import AppSettings
from patent_qc_app.llm.models import InlineDataPart, ModelTier, TextPart


@dataclass(frozen=True)
class TierRates:
    input_per_1k: float
    output_per_1k: float


def rates_from_settings(settings: AppSettings) -> dict[ModelTier, TierRates]:
    return {
        ModelTier.SMART: TierRates(settings.smart_input_price_per_1k, settings.smart_output_price_per_1k),
        ModelTier.FAST: TierRates(settings.fast_input_price_per_1k, settings.fast_output_price_per_1k),
    }


def calculate_cost(input_chars: int, output_chars: int, rates: TierRates) -> float:
    return (input_chars / 1000) * rates.input_per_1k + (output_chars / 1000) * rates.output_per_1k


def count_input_chars(contents: Any) -> int:
    """Count text characters in a (possibly nested) structure of content parts.

    Inline binary parts are not billed by character and count as zero.
    """
    if contents is None:
        return 0
    if isinstance(contents, str):
        return len(contents)
    if isinstance(contents, TextPart):
        return len(contents.text)
    if isinstance(contents, InlineDataPart):
        return 0
    if isinstance(contents, dict):
        if "parts" in contents:
            return count_input_chars(contents["parts"])
        return len(contents.get("text") or "")
    if isinstance(contents, (list, tuple)):
        return sum(count_input_chars(part) for part in contents)
    return 0
