from __future__ import annotations

import pytest

from wandelbadge.badge.errors import InvalidConfigError, InvalidFieldError
from wandelbadge.badge.schema import DEFAULT_CONFIG, merge_with_defaults, validate_config


def test_defaults_are_valid_and_ordered() -> None:
    validate_config(DEFAULT_CONFIG)
    keys = list(DEFAULT_CONFIG)
    assert keys[:3] == ["title", "showTitle", "titleFont"]
    assert keys[-5:] == ["yPos", "badgeOffsetX", "badgeOffsetY", "logoOffsetX", "logoOffsetY"]


def test_merge_keeps_default_key_set() -> None:
    merged = merge_with_defaults({"km": 40, "bogus": True})
    assert list(merged) == list(DEFAULT_CONFIG)
    assert merged["km"] == 40
    assert "bogus" not in merged


def test_merge_of_none_is_defaults() -> None:
    assert merge_with_defaults(None) == dict(DEFAULT_CONFIG)


def test_merge_is_idempotent() -> None:
    once = merge_with_defaults({"title": "Zomer", "color": "#ABCDEF"})
    assert merge_with_defaults(once) == once


def test_merge_rejects_non_object() -> None:
    with pytest.raises(InvalidConfigError, match="Config must be an object"):
        merge_with_defaults(["km", 3])  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("km", -1),
        ("km", True),
        ("km", "12"),
        ("km", float("nan")),
        ("target", 0),
        ("target", 1_000_001),
        ("color", "10b981"),
        ("color", "#10b98"),
        ("theme", "sepia"),
        ("logoType", "other"),
        ("title", "x" * 101),
        ("titleFont", "f" * 51),
        ("icon", "i" * 11),
        ("showLogo", 1),
        ("opacity", 1.5),
        ("yPos", 2001),
        ("badgeOffsetX", 501),
        ("customLogoBase64", "https://example.test/logo.png"),
        ("bgImage", "data:image/png;base64,AAAA"),
    ],
)
def test_invalid_field_is_named(field: str, value: object) -> None:
    candidate = merge_with_defaults({field: value})
    with pytest.raises(InvalidFieldError) as excinfo:
        validate_config(candidate)
    assert excinfo.value.field == field
    assert str(excinfo.value) == f"Invalid value for {field}"


def test_first_failure_follows_default_order() -> None:
    candidate = merge_with_defaults({"color": "bad", "target": 0})
    with pytest.raises(InvalidFieldError) as excinfo:
        validate_config(candidate)
    assert excinfo.value.field == "target"


def test_boundaries_and_numeric_labels_are_accepted() -> None:
    candidate = merge_with_defaults(
        {
            "km": 0,
            "target": 1_000_000,
            "opacity": 0,
            "wScale": 2,
            "yPos": 0,
            "day": 12,
            "steps": 15000,
            "title": 2026,
            "theme": "dark",
            "logoType": "custom",
            "customLogoBase64": "data:image/png;base64,AAAA",
            "logoOffsetY": -500,
        }
    )
    validate_config(candidate)


def test_validate_rejects_non_mapping() -> None:
    with pytest.raises(InvalidConfigError):
        validate_config("not a config")  # type: ignore[arg-type]
