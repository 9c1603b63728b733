import pytest

from wandelbadge.render.formatting import format_number, percent_label, round_half_up


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1234567, "1.234.567"),
        (0, "0"),
        (25, "25"),
        (12.5, "12,5"),
        (1000.456, "1.000,46"),
        (2026.0, "2.026"),
        (-1500, "-1.500"),
    ],
)
def test_format_number(value: float, expected: str) -> None:
    assert format_number(value) == expected


def test_format_number_passes_text_through() -> None:
    assert format_number("veel") == "veel"


def test_percent_label_rounds_half_up() -> None:
    assert percent_label(25 / 2026) == "1%"
    assert percent_label(0.005) == "1%"
    assert percent_label(1.0) == "100%"
    assert round_half_up(2.5) == 3
