"""Choose what to do with an image: trim, crop, resize or leave it alone."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

from framebot.borders import BorderMeasurement

logger = logging.getLogger(__name__)

SAFE_FORMATS = ('jpeg', 'png', 'webp', 'avif', 'gif', 'tiff')
DEFAULT_FORMAT = 'jpeg'
DEFAULT_MAX_SIZE = 2048


@dataclass(frozen=True)
class Region:
    left: int
    top: int
    width: int
    height: int

    @property
    def box(self) -> tuple:
        """Pillow crop box (left, upper, right, lower), right/lower exclusive."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)

    def fits(self, width: int, height: int) -> bool:
        return (
            self.left >= 0
            and self.top >= 0
            and self.width > 0
            and self.height > 0
            and self.left + self.width <= width
            and self.top + self.height <= height
        )


@dataclass(frozen=True)
class FrameTemplate:
    """A catalogued frame layout: images of exactly this size get ``crop`` applied."""

    width: int
    height: int
    crop: Region
    name: str = 'default'

    def __post_init__(self) -> None:
        if not self.crop.fits(self.width, self.height):
            raise ValueError(
                f"Template '{self.name}' crop {self.crop} does not fit a {self.width}x{self.height} frame"
            )

    def matches(self, width: int, height: int) -> bool:
        return width == self.width and height == self.height


# Default calibrated layout: 2048x1440 frame with a 1920x1080 picture inside.
DEFAULT_TEMPLATE = FrameTemplate(width=2048, height=1440, crop=Region(left=64, top=69, width=1920, height=1080))


@dataclass(frozen=True)
class Skip:
    tag = ''
    label = ''


@dataclass(frozen=True)
class FixedTrim:
    region: Region
    tag = '_trimmed'
    label = '✂️ Trimmed'


@dataclass(frozen=True)
class ProportionalCrop:
    region: Region
    tag = '_cropped'
    label = '✂️ Cropped'


@dataclass(frozen=True)
class Resize:
    """Fit inside (width, height); never enlarges."""

    width: int
    height: int
    tag = '_resized'
    label = '🔄 Resized'


Action = Union[Skip, FixedTrim, ProportionalCrop, Resize]


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    format: Optional[str] = None


@dataclass(frozen=True)
class DecisionConfig:
    max_size: int = DEFAULT_MAX_SIZE
    templates: Sequence[FrameTemplate] = (DEFAULT_TEMPLATE,)

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be >= 1")


@dataclass(frozen=True)
class TransformDecision:
    action: Action
    output_format: str
    file_name: str

    @property
    def is_skip(self) -> bool:
        return isinstance(self.action, Skip)

    def with_format(self, fmt: str, base_name: str) -> 'TransformDecision':
        return replace(self, output_format=fmt, file_name=output_name(base_name, self.action, fmt))


def choose_format(declared: Optional[str]) -> str:
    """Keep formats we know how to write back; everything else becomes JPEG."""
    fmt = (declared or '').lower()
    if fmt == 'jpg':
        fmt = 'jpeg'
    return fmt if fmt in SAFE_FORMATS else DEFAULT_FORMAT


def extension_for(fmt: str) -> str:
    return '.jpg' if fmt == 'jpeg' else f'.{fmt}'


def output_name(base_name: str, action: Action, fmt: str) -> str:
    return f'{base_name}{action.tag}{extension_for(fmt)}'


def fit_inside(width: int, height: int, max_size: int) -> tuple:
    """Scale (width, height) so the longer side equals max_size; ties clamp width."""
    if width >= height:
        return max_size, max(1, round(height * max_size / width))
    return max(1, round(width * max_size / height)), max_size


def select_action(meta: ImageMetadata, measurement: Optional[BorderMeasurement], config: DecisionConfig) -> Action:
    # Order matters: a known exact layout beats the heuristic scan.
    for template in config.templates:
        if template.matches(meta.width, meta.height):
            return FixedTrim(template.crop)

    if measurement is not None:
        return ProportionalCrop(
            Region(
                left=measurement.left,
                top=measurement.top,
                width=measurement.content_width,
                height=measurement.content_height,
            )
        )

    if max(meta.width, meta.height) > config.max_size:
        width, height = fit_inside(meta.width, meta.height, config.max_size)
        return Resize(width, height)

    return Skip()


def decide(
    meta: ImageMetadata,
    measurement: Optional[BorderMeasurement],
    config: Optional[DecisionConfig] = None,
    base_name: str = 'image',
) -> TransformDecision:
    config = config or DecisionConfig()
    action = select_action(meta, measurement, config)
    fmt = choose_format(meta.format)
    decision = TransformDecision(action=action, output_format=fmt, file_name=output_name(base_name, action, fmt))
    logger.info(f"{base_name} ({meta.width}x{meta.height}, {meta.format}): {type(action).__name__} -> {decision.file_name}")
    return decision
