"""Badge rasterisation: layout, fonts, images and number formatting."""

from .assets import AssetLoader, FontProvider, decode_data_url, decode_image
from .formatting import format_number, percent_label
from .renderer import CANVAS_HEIGHT, CANVAS_WIDTH, BadgeLayout, BadgeRenderer, Rect

__all__ = [
    "CANVAS_HEIGHT",
    "CANVAS_WIDTH",
    "AssetLoader",
    "BadgeLayout",
    "BadgeRenderer",
    "FontProvider",
    "Rect",
    "decode_data_url",
    "decode_image",
    "format_number",
    "percent_label",
]
