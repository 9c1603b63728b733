"""
Deterministic rasteriser for the progress badge.

`BadgeRenderer.render` turns one configuration snapshot into PNG bytes on a
fixed 1080x1920 canvas. Geometry depends only on the configuration and the
constants below; the only external inputs are the font provider and the
logo/background images, whose decode failures drop that element and keep
the rest of the badge.

Drawing order: background, card, year, completion badge, icon, title (with
optional check mark), progress bar, distance/target, extra lines, glyphs,
logo.
"""

from __future__ import annotations

import io
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from PIL import Image, ImageDraw

from ..badge.errors import DecodeError
from .assets import AssetLoader, Font, FontProvider, decode_data_url, decode_image
from .formatting import format_number, percent_label

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1080
CANVAS_HEIGHT = 1920

CARD_MARGIN_X = 100
CARD_HEIGHT = 760
CARD_RADIUS = 80
CONTENT_TOP = 70
CONTENT_PADDING_X = 70

YEAR_GAP = 20
BADGE_RADIUS = 95
BADGE_OUTLINE = 6
BADGE_CAPTION = "BEHAALD"
ICON_SHIFT = 120
TITLE_GAP = 50
CHECK_GAP = 18

BAR_HEIGHT = 38
PROGRESS_EPSILON = 0.001
DISTANCE_GAP = 30
LINE_GAP = 40
LINE_SPACING = 14
GLYPH_SIZE = 56
GLYPH_GAP = 14

LOGO_WIDTH = 200
LOGO_MAX_HEIGHT = 160
LOGO_MARGIN_X = 50
LOGO_MARGIN_Y = 40

WHITE = (255, 255, 255, 255)

THEMES: dict[str, dict[str, tuple[int, int, int]]] = {
    "light": {"card": (255, 255, 255), "text": (17, 24, 39), "track": (229, 231, 235)},
    "dark": {"card": (17, 24, 39), "text": (255, 255, 255), "track": (55, 65, 81)},
}


@dataclass(frozen=True, slots=True)
class Rect:
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def box(self) -> tuple[int, int, int, int]:
        return (round(self.x0), round(self.y0), round(self.x1), round(self.y1))


@dataclass(slots=True)
class BadgeLayout:
    """Geometry and text decided while drawing one badge."""

    card: Rect
    progress: float
    percent_label: str
    badge_center: tuple[float, float]
    badge_radius: float
    track: Rect
    fill: Rect | None = None
    year_text: str | None = None
    icon_drawn: bool = False
    icon_box: Rect | None = None
    content_top: float = 0.0
    title_box: Rect | None = None
    check_center: tuple[float, float] | None = None
    distance_text: str = ""
    target_text: str = ""
    lines: list[str] = field(default_factory=list)
    glyphs: str | None = None
    glyph_box: Rect | None = None
    logo_box: Rect | None = None
    background_drawn: bool = False


def _hex_to_rgb(value: str) -> tuple[int, int, int]:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class BadgeRenderer:
    """Pure function object from configuration snapshot to PNG bytes."""

    def __init__(
        self,
        *,
        fonts: FontProvider | None = None,
        assets: AssetLoader | None = None,
        builtin_logo: str | Path | None = None,
        background_path: str | Path | None = None,
    ) -> None:
        self._fonts = fonts or FontProvider()
        self._assets = assets or AssetLoader()
        self._builtin_logo = builtin_logo
        self._background_path = background_path

    def render(self, config: Mapping[str, Any]) -> bytes:
        """Render ``config`` and return PNG bytes."""
        image, _layout = self._compose(config)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def describe(self, config: Mapping[str, Any]) -> BadgeLayout:
        """Run the layout and drawing and return the decided geometry."""
        _image, layout = self._compose(config)
        return layout

    def _compose(self, config: Mapping[str, Any]) -> tuple[Image.Image, BadgeLayout]:
        ws = float(config["wScale"])
        hs = float(config["hScale"])
        palette = THEMES.get(config["theme"], THEMES["light"])
        accent = _hex_to_rgb(config["color"])
        text_color = (*palette["text"], 255)

        canvas = Image.new("RGBA", (CANVAS_WIDTH, CANVAS_HEIGHT), (0, 0, 0, 0))
        background_drawn = self._draw_background(canvas)

        margin = CARD_MARGIN_X * ws
        card_height = CARD_HEIGHT * hs
        card_bottom = float(config["yPos"])
        card = Rect(margin, card_bottom - card_height, CANVAS_WIDTH - margin, card_bottom)
        alpha = round(float(config["opacity"]) * 255)
        card_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(card_layer).rounded_rectangle(
            card.box(), radius=round(CARD_RADIUS * ws), fill=(*palette["card"], alpha)
        )
        canvas.alpha_composite(card_layer)
        draw = ImageDraw.Draw(canvas)

        target = float(config["target"])
        progress = min(float(config["km"]) / target, 1.0)
        center_x = CANVAS_WIDTH / 2

        year_text = None
        if config["showYear"] and _text(config["yearText"]):
            year_text = _text(config["yearText"])
            year_font = self._fonts.font(
                config["yearFont"],
                config["yearSize"],
                bold=config["yearBold"],
                italic=config["yearItalic"],
            )
            draw.text(
                (center_x, card.y0 - YEAR_GAP * hs),
                year_text,
                font=year_font,
                fill=(*accent, 255),
                anchor="ms",
            )

        radius = BADGE_RADIUS * ws
        badge_center = (
            card.x1 + float(config["badgeOffsetX"]),
            card.y0 + float(config["badgeOffsetY"]),
        )
        label = percent_label(progress)
        self._draw_badge(draw, badge_center, radius, accent, label, config, ws)

        y = card.y0 + CONTENT_TOP * hs
        icon = _text(config["icon"])
        icon_box = None
        if icon:
            icon_box = self._paste_emoji(
                canvas, (center_x, y), icon, float(config["iconSize"]), text_color, anchor="mt"
            )
            y += ICON_SHIFT * hs
        content_top = y

        title_box = None
        check_center = None
        title = _text(config["title"])
        if config["showTitle"] and title:
            title_font = self._fonts.font(
                config["titleFont"],
                config["titleSize"],
                bold=config["titleBold"],
                italic=config["titleItalic"],
            )
            draw.text((center_x, y), title, font=title_font, fill=text_color, anchor="mt")
            title_box = Rect(*draw.textbbox((center_x, y), title, font=title_font, anchor="mt"))
            if config["titleCheck"]:
                check_center = self._draw_check(draw, title_box, float(config["titleSize"]), accent)
            y = title_box.y1 + TITLE_GAP * hs

        pad = CONTENT_PADDING_X * ws
        bar_height = BAR_HEIGHT * hs
        track = Rect(card.x0 + pad, y, card.x1 - pad, y + bar_height)
        draw.rounded_rectangle(
            track.box(), radius=round(bar_height / 2), fill=(*palette["track"], 255)
        )
        fill_rect = None
        if progress > PROGRESS_EPSILON:
            fill_width = min(max(track.width * progress, bar_height), track.width)
            fill_rect = Rect(track.x0, track.y0, track.x0 + fill_width, track.y1)
            draw.rounded_rectangle(
                fill_rect.box(), radius=round(bar_height / 2), fill=(*accent, 255)
            )

        km_font = self._fonts.font(
            config["kmFont"], config["kmSize"], bold=config["kmBold"], italic=config["kmItalic"]
        )
        goal_font = self._fonts.font(
            config["goalFont"],
            config["goalSize"],
            bold=config["goalBold"],
            italic=config["goalItalic"],
        )
        baseline = track.y1 + DISTANCE_GAP * hs + float(config["kmSize"])
        distance_text = f"{format_number(config['km'])} km"
        target_text = f"/ {format_number(config['target'])} km"
        draw.text(
            (track.x0, baseline), distance_text, font=km_font, fill=(*accent, 255), anchor="ls"
        )
        draw.text((track.x1, baseline), target_text, font=goal_font, fill=text_color, anchor="rs")

        lines = self._extra_lines(config)
        line_font = self._fonts.font(
            config["goalFont"],
            float(config["goalSize"]) * 0.8,
            bold=False,
            italic=config["goalItalic"],
        )
        line_y = baseline + LINE_GAP * hs
        for line in lines:
            draw.text((track.x0, line_y), line, font=line_font, fill=text_color, anchor="lt")
            bbox = draw.textbbox((track.x0, line_y), line, font=line_font, anchor="lt")
            line_y = bbox[3] + LINE_SPACING * hs

        glyphs = " ".join(g for g in (_text(config["weather"]), _text(config["terrain"])) if g)
        glyph_box = None
        if glyphs:
            glyph_box = self._paste_emoji(
                canvas,
                (track.x1, track.y0 - GLYPH_GAP * hs),
                glyphs,
                GLYPH_SIZE * hs,
                text_color,
                anchor="rb",
            )

        logo_box = None
        if config["showLogo"]:
            logo_box = self._draw_logo(canvas, card, config, ws, hs)

        layout = BadgeLayout(
            card=card,
            progress=progress,
            percent_label=label,
            badge_center=badge_center,
            badge_radius=radius,
            track=track,
            fill=fill_rect,
            year_text=year_text,
            icon_drawn=bool(icon),
            icon_box=icon_box,
            content_top=content_top,
            title_box=title_box,
            check_center=check_center,
            distance_text=distance_text,
            target_text=target_text,
            lines=lines,
            glyphs=glyphs or None,
            glyph_box=glyph_box,
            logo_box=logo_box,
            background_drawn=background_drawn,
        )
        return canvas, layout

    def _paste_emoji(
        self,
        canvas: Image.Image,
        xy: tuple[float, float],
        text: str,
        size: float,
        fill: tuple[int, int, int, int],
        *,
        anchor: str,
    ) -> Rect | None:
        """Rasterise ``text`` with the emoji font and composite it at ``size`` pixels.

        Colour bitmap fonts only draw at their strike size, so the glyphs are
        drawn on their own layer at the font's size and resized to ``size``.
        ``anchor`` is ``"mt"`` (middle top) or ``"rb"`` (right bottom).
        """
        font = self._fonts.emoji(size)
        _left, _top, right, bottom = ImageDraw.Draw(canvas).textbbox(
            (0, 0), text, font=font, anchor="lt", embedded_color=True
        )
        layer = Image.new("RGBA", (max(1, math.ceil(right)), max(1, math.ceil(bottom))))
        ImageDraw.Draw(layer).text(
            (0, 0), text, font=font, fill=fill, anchor="lt", embedded_color=True
        )
        ink = layer.getbbox()
        if ink is None:
            return None
        glyph = layer.crop(ink)
        native = float(getattr(font, "size", size))
        if native != size:
            scale = size / native
            glyph = glyph.resize(
                (max(1, round(glyph.width * scale)), max(1, round(glyph.height * scale))),
                Image.Resampling.LANCZOS,
            )
        x, y = xy
        if anchor == "mt":
            x -= glyph.width / 2
        elif anchor == "rb":
            x -= glyph.width
            y -= glyph.height
        left, top = round(x), round(y)
        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        overlay.paste(glyph, (left, top))
        canvas.alpha_composite(overlay)
        return Rect(left, top, left + glyph.width, top + glyph.height)

    def _draw_background(self, canvas: Image.Image) -> bool:
        if not self._background_path:
            return False
        try:
            image = decode_image(self._assets.read_bytes(self._background_path))
        except (OSError, DecodeError) as exc:
            logger.warning("Skipping background image %s: %s", self._background_path, exc)
            return False
        scale = max(CANVAS_WIDTH / image.width, CANVAS_HEIGHT / image.height)
        size = (math.ceil(image.width * scale), math.ceil(image.height * scale))
        image = image.resize(size, Image.Resampling.LANCZOS)
        offset = ((CANVAS_WIDTH - size[0]) // 2, (CANVAS_HEIGHT - size[1]) // 2)
        canvas.paste(image, offset)
        return True

    def _draw_badge(
        self,
        draw: ImageDraw.ImageDraw,
        center: tuple[float, float],
        radius: float,
        accent: tuple[int, int, int],
        label: str,
        config: Mapping[str, Any],
        ws: float,
    ) -> None:
        cx, cy = center
        draw.ellipse(
            (cx - radius, cy - radius, cx + radius, cy + radius),
            fill=(*accent, 255),
            outline=WHITE,
            width=max(1, round(BADGE_OUTLINE * ws)),
        )
        label_font = self._fonts.font(config["goalFont"], 58 * ws, bold=True)
        caption_font = self._fonts.font(config["goalFont"], 18 * ws, bold=True)
        draw.text((cx, cy - 12 * ws), label, font=label_font, fill=WHITE, anchor="mm")
        draw.text((cx, cy + 34 * ws), BADGE_CAPTION, font=caption_font, fill=WHITE, anchor="mm")

    def _draw_check(
        self,
        draw: ImageDraw.ImageDraw,
        title_box: Rect,
        title_size: float,
        accent: tuple[int, int, int],
    ) -> tuple[float, float]:
        radius = title_size * 0.42
        cx = title_box.x1 + CHECK_GAP + radius
        cy = title_box.y0 + title_box.height / 2
        draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=(*accent, 255))
        stroke = max(2, round(radius * 0.22))
        draw.line(
            [
                (cx - radius * 0.45, cy + radius * 0.02),
                (cx - radius * 0.1, cy + radius * 0.38),
                (cx + radius * 0.5, cy - radius * 0.32),
            ],
            fill=WHITE,
            width=stroke,
            joint="curve",
        )
        return cx, cy

    def _extra_lines(self, config: Mapping[str, Any]) -> list[str]:
        lines: list[str] = []
        day = _text(config["day"])
        if day:
            lines.append(f"Dag {day}")
        steps = config["steps"]
        if _text(steps):
            shown = format_number(steps) if isinstance(steps, int | float) else _text(steps)
            lines.append(f"{shown} stappen")
        handle = _text(config["handle"])
        if handle:
            lines.append(handle if handle.startswith("@") else f"@{handle}")
        return lines

    def _draw_logo(
        self,
        canvas: Image.Image,
        card: Rect,
        config: Mapping[str, Any],
        ws: float,
        hs: float,
    ) -> Rect | None:
        try:
            logo = self._resolve_logo(config)
        except (OSError, DecodeError) as exc:
            logger.warning("Skipping logo: %s", exc)
            return None
        if logo is None:
            return None
        scale = min(LOGO_WIDTH * ws / logo.width, LOGO_MAX_HEIGHT * hs / logo.height)
        size = (max(1, round(logo.width * scale)), max(1, round(logo.height * scale)))
        logo = logo.resize(size, Image.Resampling.LANCZOS)
        x = round(card.x1 - LOGO_MARGIN_X * ws - size[0] + float(config["logoOffsetX"]))
        y = round(card.y1 - LOGO_MARGIN_Y * hs - size[1] + float(config["logoOffsetY"]))
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        layer.paste(logo, (x, y))
        canvas.alpha_composite(layer)
        return Rect(x, y, x + size[0], y + size[1])

    def _resolve_logo(self, config: Mapping[str, Any]) -> Image.Image | None:
        if config["logoType"] == "custom":
            payload = config["customLogoBase64"]
            if not payload:
                return None
            return decode_data_url(payload)
        if not self._builtin_logo:
            return None
        return decode_image(self._assets.read_bytes(self._builtin_logo))


__all__ = ["CANVAS_HEIGHT", "CANVAS_WIDTH", "BadgeLayout", "BadgeRenderer", "Rect"]
