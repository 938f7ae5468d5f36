import pytest

from patent_qc_app.llm.models import InlineDataPart, ModelTier, TextPart
from patent_qc_app.llm.pricing import TierRates, calculate_cost, count_input_chars, rates_from_settings


def test_cost_is_linear_in_characters() -> None:
    rates = TierRates(input_per_1k=0.0125, output_per_1k=0.025)

    assert calculate_cost(0, 0, rates) == 0
    assert calculate_cost(1000, 1000, rates) == pytest.approx(0.0375)
    assert calculate_cost(4000, 0, rates) == pytest.approx(4 * calculate_cost(1000, 0, rates))


def test_tier_rates_come_from_settings(settings) -> None:
    rates = rates_from_settings(settings)

    assert rates[ModelTier.SMART] == TierRates(0.0125, 0.025)
    assert rates[ModelTier.FAST] == TierRates(0.0025, 0.005)
    assert rates[ModelTier.FAST].input_per_1k < rates[ModelTier.SMART].input_per_1k


def test_input_counting_walks_nested_content() -> None:
    image = InlineDataPart(mime_type="image/jpeg", data=b"\xff\xd8" * 100)
    contents = [
        "abc",
        TextPart(text="四个汉字"),
        image,
        {"parts": [{"text": "xy"}, {"inline_data": "ignored"}]},
        ("z", [TextPart(text="12")]),
    ]

    assert count_input_chars(contents) == 3 + 4 + 0 + 2 + 1 + 2
    assert count_input_chars(None) == 0
    assert count_input_chars(image) == 0
