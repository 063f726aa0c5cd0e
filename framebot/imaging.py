"""Pillow adapter: decode attachment bytes, apply a decision, encode the result."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from framebot.decisions import (
    DEFAULT_FORMAT,
    Action,
    FixedTrim,
    ImageMetadata,
    ProportionalCrop,
    Region,
    Resize,
    Skip,
)
from framebot.errors import DecodeError, EncodeError, GeometryError

logger = logging.getLogger(__name__)

# Refuse decompression bombs well above anything a chat upload should be.
Image.MAX_IMAGE_PIXELS = 120_000_000

SAVE_OPTIONS = {
    'jpeg': {'quality': 90, 'optimize': True},
    'png': {'optimize': True},
    'webp': {'quality': 90},
    'avif': {'quality': 80},
}


@dataclass
class DecodedImage:
    image: Image.Image
    format: Optional[str]

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def metadata(self) -> ImageMetadata:
        return ImageMetadata(width=self.width, height=self.height, format=self.format)

    def rgba_pixels(self) -> bytes:
        return self.image.tobytes()


def decode(data: bytes) -> DecodedImage:
    """Open image bytes, honour EXIF orientation and normalise to RGBA."""
    try:
        with Image.open(io.BytesIO(data)) as src:
            fmt = src.format.lower() if src.format else None
            oriented = ImageOps.exif_transpose(src)
            rgba = oriented.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e
    return DecodedImage(image=rgba, format=fmt)


def _extract(image: Image.Image, region: Region) -> Image.Image:
    if not region.fits(image.width, image.height):
        raise GeometryError(
            f"Region {region.width}x{region.height}+{region.left}+{region.top} "
            f"is outside the {image.width}x{image.height} image"
        )
    return image.crop(region.box)


def render(decoded: DecodedImage, action: Action) -> Image.Image:
    """Apply the pixel operation for ``action``; Skip returns the image untouched."""
    image = decoded.image
    if isinstance(action, Skip):
        return image
    if isinstance(action, (FixedTrim, ProportionalCrop)):
        return _extract(image, action.region)
    if isinstance(action, Resize):
        if action.width < 1 or action.height < 1:
            raise GeometryError(f"Invalid resize target {action.width}x{action.height}")
        if action.width >= image.width and action.height >= image.height:
            # Fit inside without enlargement.
            return image
        return image.resize((action.width, action.height), Image.LANCZOS)
    raise TypeError(f"Unhandled action {action!r}")


def _flatten(image: Image.Image) -> Image.Image:
    if image.mode in ('RGBA', 'LA', 'P'):
        rgba = image.convert('RGBA')
        background = Image.new('RGB', rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel('A'))
        return background
    return image.convert('RGB')


def _save(image: Image.Image, fmt: str) -> bytes:
    if fmt == 'jpeg':
        image = _flatten(image)
    buf = io.BytesIO()
    image.save(buf, fmt.upper(), **SAVE_OPTIONS.get(fmt, {}))
    return buf.getvalue()


def encode(image: Image.Image, fmt: str) -> Tuple[bytes, str]:
    """Encode to ``fmt``; fall back to JPEG if that encoder is unavailable.

    Returns the bytes and the format actually written.
    """
    try:
        return _save(image, fmt), fmt
    except (KeyError, ValueError, OSError) as e:
        if fmt == DEFAULT_FORMAT:
            raise EncodeError(f"Cannot encode image as {fmt}: {e}") from e
        logger.warning(f"Encoding as {fmt} failed ({e}); falling back to {DEFAULT_FORMAT}")

    try:
        return _save(image, DEFAULT_FORMAT), DEFAULT_FORMAT
    except (KeyError, ValueError, OSError) as e:
        raise EncodeError(f"Cannot encode image as {DEFAULT_FORMAT}: {e}") from e
