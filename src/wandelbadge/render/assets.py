"""
Font and image collaborators for the badge renderer.

Fonts are looked up by family and style in a fonts directory and fall back
to Pillow's built-in scalable font, so rendering never fails because a
family is missing. Image helpers turn bytes or data URLs into RGBA images and
raise `DecodeError` for anything Pillow cannot read.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from collections import OrderedDict
from pathlib import Path

from PIL import Image, ImageFont

from ..badge.errors import DecodeError

logger = logging.getLogger(__name__)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont

_STYLE_SUFFIXES = {
    (False, False): ("Regular", ""),
    (True, False): ("Bold",),
    (False, True): ("Italic",),
    (True, True): ("BoldItalic", "Bold Italic"),
}
_EXTENSIONS = (".ttf", ".otf")
# Bitmap colour emoji fonts only rasterise at their native strike size.
_EMOJI_STRIKE_SIZE = 109
DEFAULT_CACHE_SIZE = 64


class FontProvider:
    """Resolve (family, size, bold, italic) to a Pillow font, with caching.

    Loaded fonts are cached by resolved file and pixel size in a bounded LRU,
    so every family without a matching file shares one fallback entry.
    """

    def __init__(
        self,
        fonts_dir: str | Path | None = None,
        emoji_font: str | Path | None = None,
        *,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ):
        self._fonts_dir = Path(fonts_dir) if fonts_dir else None
        self._emoji_font = Path(emoji_font) if emoji_font else None
        self._cache_size = max(1, cache_size)
        self._cache: OrderedDict[tuple[str, int], Font | None] = OrderedDict()

    @property
    def cached_fonts(self) -> int:
        return len(self._cache)

    def font(self, family: str, size: float, *, bold: bool = False, italic: bool = False) -> Font:
        pixels = _pixels(size)
        for path in self._candidates(family, bool(bold), bool(italic)):
            font = self._truetype(path, pixels)
            if font is not None:
                return font
        logger.debug(
            "Falling back to default font for %s (bold=%s italic=%s)", family, bold, italic
        )
        return self._default(pixels)

    def emoji(self, size: float) -> Font:
        """Emoji font for ``size``; may be loaded at the font's native strike size.

        Callers compare ``font.size`` with the requested size and scale the
        rasterised glyphs themselves.
        """
        pixels = _pixels(size)
        if self._emoji_font is not None and self._emoji_font.exists():
            for candidate_size in (pixels, _EMOJI_STRIKE_SIZE):
                font = self._truetype(self._emoji_font, candidate_size)
                if font is not None:
                    return font
        return self._default(pixels)

    def _truetype(self, path: Path, size: int) -> Font | None:
        key = (str(path), size)
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]
        try:
            font: Font | None = ImageFont.truetype(str(path), size)
        except OSError:
            logger.debug("Font %s could not be loaded at size %d", path, size)
            font = None
        self._remember(key, font)
        return font

    def _default(self, size: int) -> Font:
        key = ("", size)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached
        font = ImageFont.load_default(size=size)
        self._remember(key, font)
        return font

    def _remember(self, key: tuple[str, int], font: Font | None) -> None:
        self._cache[key] = font
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    def _candidates(self, family: str, bold: bool, italic: bool) -> list[Path]:
        if self._fonts_dir is None or not self._fonts_dir.is_dir():
            return []
        names = {family, family.replace(" ", "")}
        paths: list[Path] = []
        for name in sorted(names):
            if not name or Path(name).name != name:
                continue
            for suffix in _STYLE_SUFFIXES[(bold, italic)]:
                stem = f"{name}-{suffix}" if suffix else name
                for extension in _EXTENSIONS:
                    path = self._fonts_dir / f"{stem}{extension}"
                    if path.exists():
                        paths.append(path)
        return paths


def _pixels(size: float) -> int:
    return max(1, int(round(size)))


class AssetLoader:
    """Read asset bytes by path, relative paths resolved against ``root``."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root else None

    def resolve(self, path: str | Path) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute() and self._root is not None:
            candidate = self._root / candidate
        return candidate

    def read_bytes(self, path: str | Path) -> bytes:
        return self.resolve(path).read_bytes()


def decode_image(data: bytes) -> Image.Image:
    """Decode ``data`` into a fully loaded RGBA image."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Unable to decode image: {exc}") from exc


def decode_data_url(url: str) -> Image.Image:
    """Decode a ``data:image/...;base64,...`` URL into an RGBA image."""
    header, separator, body = url.partition(",")
    if not separator or not header.startswith("data:image/"):
        raise DecodeError("Not an image data URL")
    try:
        if header.endswith(";base64"):
            data = base64.b64decode(body, validate=True)
        else:
            data = body.encode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload: {exc}") from exc
    return decode_image(data)


__all__ = ["AssetLoader", "Font", "FontProvider", "decode_data_url", "decode_image"]
