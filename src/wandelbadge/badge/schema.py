"""
Badge configuration schema: canonical defaults, per-field rules and the merger.

Every write goes through `merge_with_defaults` and then `validate_config`, so
the registry only ever holds complete, valid configurations. Rules are plain
tagged objects keyed by field name; adding a field means adding one default
and one rule, without touching any caller.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import InvalidConfigError, InvalidFieldError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Mapping[str, Any] = MappingProxyType(
    {
        "title": "WandelChallenge",
        "showTitle": True,
        "titleFont": "Inter",
        "titleSize": 52,
        "titleBold": True,
        "titleItalic": False,
        "titleCheck": False,
        "yearText": "2026",
        "yearFont": "Inter",
        "yearBold": True,
        "yearItalic": False,
        "yearSize": 180,
        "showYear": True,
        "km": 25,
        "kmFont": "Inter",
        "kmSize": 85,
        "kmBold": True,
        "kmItalic": False,
        "target": 2026,
        "day": "",
        "steps": "",
        "handle": "",
        "color": "#10b981",
        "theme": "light",
        "icon": "",
        "iconSize": 95,
        "goalFont": "Inter",
        "goalSize": 45,
        "goalBold": True,
        "goalItalic": False,
        "opacity": 0.9,
        "showLogo": True,
        "logoType": "fightcancer",
        "customLogoBase64": None,
        "bgImage": None,
        "customLogoImg": None,
        "fightCancerLogoImg": None,
        "weather": "",
        "terrain": "",
        "wScale": 1.0,
        "hScale": 0.9,
        "yPos": 1300,
        "badgeOffsetX": 0,
        "badgeOffsetY": 0,
        "logoOffsetX": 0,
        "logoOffsetY": 0,
    }
)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid numeric field
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


@dataclass(frozen=True, slots=True)
class NumberRule:
    minimum: float
    maximum: float
    exclusive_minimum: bool = False

    def check(self, value: Any) -> bool:
        if not _is_number(value):
            return False
        if self.exclusive_minimum:
            above = value > self.minimum
        else:
            above = value >= self.minimum
        return above and value <= self.maximum


@dataclass(frozen=True, slots=True)
class TextRule:
    """String of bounded length; `numeric_ok` also admits finite numbers."""

    max_length: int
    numeric_ok: bool = False

    def check(self, value: Any) -> bool:
        if isinstance(value, str):
            return len(value) <= self.max_length
        if self.numeric_ok and _is_number(value):
            return len(str(value)) <= self.max_length
        return False


@dataclass(frozen=True, slots=True)
class BoolRule:
    def check(self, value: Any) -> bool:
        return isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class PatternRule:
    pattern: re.Pattern[str]

    def check(self, value: Any) -> bool:
        return isinstance(value, str) and self.pattern.fullmatch(value) is not None


@dataclass(frozen=True, slots=True)
class ChoiceRule:
    choices: frozenset[str]

    def check(self, value: Any) -> bool:
        return isinstance(value, str) and value in self.choices


@dataclass(frozen=True, slots=True)
class ImagePayloadRule:
    """Optional data URL declaring an image media type."""

    max_length: int

    def check(self, value: Any) -> bool:
        if value is None:
            return True
        return (
            isinstance(value, str)
            and len(value) <= self.max_length
            and value.startswith("data:image/")
        )


@dataclass(frozen=True, slots=True)
class AbsentRule:
    """Reserved image handle that must stay null."""

    def check(self, value: Any) -> bool:
        return value is None


Rule = NumberRule | TextRule | BoolRule | PatternRule | ChoiceRule | ImagePayloadRule | AbsentRule

_FONT = TextRule(max_length=50)
_GLYPH = TextRule(max_length=10)
_FLAG = BoolRule()
_OFFSET = NumberRule(-500, 500)

FIELD_RULES: Mapping[str, Rule] = MappingProxyType(
    {
        "km": NumberRule(0, 1_000_000),
        "target": NumberRule(0, 1_000_000, exclusive_minimum=True),
        "day": TextRule(max_length=10, numeric_ok=True),
        "steps": TextRule(max_length=20, numeric_ok=True),
        "title": TextRule(max_length=100, numeric_ok=True),
        "yearText": TextRule(max_length=20, numeric_ok=True),
        "handle": TextRule(max_length=50, numeric_ok=True),
        "titleFont": _FONT,
        "yearFont": _FONT,
        "kmFont": _FONT,
        "goalFont": _FONT,
        "titleSize": NumberRule(20, 200),
        "yearSize": NumberRule(50, 500),
        "kmSize": NumberRule(40, 200),
        "goalSize": NumberRule(20, 100),
        "iconSize": NumberRule(40, 200),
        "opacity": NumberRule(0, 1),
        "wScale": NumberRule(0.5, 2),
        "hScale": NumberRule(0.5, 2),
        "yPos": NumberRule(0, 2000),
        "badgeOffsetX": _OFFSET,
        "badgeOffsetY": _OFFSET,
        "logoOffsetX": _OFFSET,
        "logoOffsetY": _OFFSET,
        "showTitle": _FLAG,
        "showYear": _FLAG,
        "showLogo": _FLAG,
        "titleBold": _FLAG,
        "titleItalic": _FLAG,
        "titleCheck": _FLAG,
        "yearBold": _FLAG,
        "yearItalic": _FLAG,
        "kmBold": _FLAG,
        "kmItalic": _FLAG,
        "goalBold": _FLAG,
        "goalItalic": _FLAG,
        "color": PatternRule(re.compile(r"#[0-9A-Fa-f]{6}")),
        "theme": ChoiceRule(frozenset({"light", "dark"})),
        "logoType": ChoiceRule(frozenset({"fightcancer", "custom"})),
        "icon": _GLYPH,
        "weather": _GLYPH,
        "terrain": _GLYPH,
        "customLogoBase64": ImagePayloadRule(max_length=5_000_000),
        "bgImage": AbsentRule(),
        "customLogoImg": AbsentRule(),
        "fightCancerLogoImg": AbsentRule(),
    }
)


def validate_config(candidate: Mapping[str, Any]) -> None:
    """
    Check every known field of ``candidate`` against its rule.

    Fields are visited in the candidate's own iteration order and the first
    failure raises `InvalidFieldError`. Unknown fields are ignored.
    """
    if not isinstance(candidate, Mapping):
        raise InvalidConfigError("Config must be an object")
    for field, value in candidate.items():
        rule = FIELD_RULES.get(field)
        if rule is not None and not rule.check(value):
            raise InvalidFieldError(field)


def merge_with_defaults(
    partial: Mapping[str, Any] | None, defaults: Mapping[str, Any] = DEFAULT_CONFIG
) -> dict[str, Any]:
    """
    Overlay ``partial`` onto the canonical defaults (shallow, last write wins).

    The result always has exactly the default key set, in default order;
    keys the schema does not know are dropped.
    """
    if partial is None:
        partial = {}
    if not isinstance(partial, Mapping):
        raise InvalidConfigError("Config must be an object")
    merged = dict(defaults)
    for key, value in partial.items():
        if key in merged:
            merged[key] = value
        else:
            logger.debug("Dropping unknown config field %r", key)
    return merged


__all__ = [
    "DEFAULT_CONFIG",
    "FIELD_RULES",
    "AbsentRule",
    "BoolRule",
    "ChoiceRule",
    "ImagePayloadRule",
    "NumberRule",
    "PatternRule",
    "Rule",
    "TextRule",
    "merge_with_defaults",
    "validate_config",
]
