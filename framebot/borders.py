"""Detect a uniform light frame around an image from raw RGBA pixels.

The scanner walks inwards from each edge, sampling every ``sample_stride``
pixels of a line, and stops at the first line that is almost entirely
"content" (not background). Rows are scanned first; columns are then sampled
only inside the row band found, so a header or footer strip does not hide
the side margins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

CHANNELS = 4  # RGBA


@dataclass(frozen=True)
class ScanConfig:
    brightness_threshold: int = 245
    sample_stride: int = 10
    coverage_threshold: float = 0.95
    min_border_thickness: int = 6

    def __post_init__(self) -> None:
        if not 0 <= self.brightness_threshold <= 255:
            raise ValueError("brightness_threshold must be between 0 and 255")
        if self.sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")
        if not 0 < self.coverage_threshold <= 1:
            raise ValueError("coverage_threshold must be in (0, 1]")
        if self.min_border_thickness < 0:
            raise ValueError("min_border_thickness must be >= 0")


@dataclass(frozen=True)
class BorderMeasurement:
    """Inclusive content bounds: rows top..bottom, columns left..right."""

    top: int
    bottom: int
    left: int
    right: int
    width: int
    height: int

    @property
    def margins(self) -> tuple:
        """Frame thickness on each side as (top, bottom, left, right)."""
        return (
            self.top,
            self.height - 1 - self.bottom,
            self.left,
            self.width - 1 - self.right,
        )

    @property
    def content_width(self) -> int:
        return self.right - self.left + 1

    @property
    def content_height(self) -> int:
        return self.bottom - self.top + 1


class _Pixels:
    def __init__(self, pixels: bytes, width: int, threshold: int):
        self.data = memoryview(pixels)
        self.width = width
        self.threshold = threshold

    def is_background(self, x: int, y: int) -> bool:
        i = (y * self.width + x) * CHANNELS
        t = self.threshold
        data = self.data
        return data[i] >= t and data[i + 1] >= t and data[i + 2] >= t


def _row_is_content(px: _Pixels, y: int, stride: int, need: float) -> bool:
    samples = range(0, px.width, stride)
    non_bg = sum(1 for x in samples if not px.is_background(x, y))
    return non_bg / len(samples) >= need


def _column_is_content(px: _Pixels, x: int, top: int, bottom: int, stride: int, need: float) -> bool:
    samples = range(top, bottom + 1, stride)
    non_bg = sum(1 for y in samples if not px.is_background(x, y))
    return non_bg / len(samples) >= need


def scan(pixels: bytes, width: int, height: int, config: Optional[ScanConfig] = None) -> Optional[BorderMeasurement]:
    """Return the content bounds inside a light frame, or None when there is no frame.

    ``pixels`` is a tightly packed, row-major RGBA buffer. A frame is only
    reported when every side is at least ``min_border_thickness`` thick;
    thinner fringes (anti-aliasing, scanner noise) are ignored.
    """
    config = config or ScanConfig()
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")
    if len(pixels) < width * height * CHANNELS:
        raise ValueError(f"Pixel buffer too short for {width}x{height} RGBA")

    px = _Pixels(pixels, width, config.brightness_threshold)
    stride = config.sample_stride
    need = config.coverage_threshold

    top, bottom, left, right = 0, height - 1, 0, width - 1

    for y in range(height):
        if _row_is_content(px, y, stride, need):
            top = y
            break
    for y in range(height - 1, -1, -1):
        if _row_is_content(px, y, stride, need):
            bottom = y
            break

    if bottom < top:
        return None

    for x in range(width):
        if _column_is_content(px, x, top, bottom, stride, need):
            left = x
            break
    for x in range(width - 1, -1, -1):
        if _column_is_content(px, x, top, bottom, stride, need):
            right = x
            break

    if right < left:
        return None

    measurement = BorderMeasurement(top=top, bottom=bottom, left=left, right=right, width=width, height=height)
    thinnest = min(measurement.margins)
    if thinnest < config.min_border_thickness:
        logger.debug(f"No frame: thinnest side {thinnest}px < {config.min_border_thickness}px")
        return None

    logger.debug(f"Frame found, margins (t, b, l, r) = {measurement.margins}")
    return measurement
