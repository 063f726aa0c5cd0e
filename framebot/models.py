"""Typed containers shared between the transport adapter and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.avif', '.gif', '.tif', '.tiff', '.bmp')


def channel_in_scope(target_channel_id: str, channel_id: Optional[str], parent_channel_id: Optional[str] = None) -> bool:
    """A message is watched if it lives in the target channel or one of its sub-threads."""
    return bool(target_channel_id) and target_channel_id in (channel_id, parent_channel_id)


@dataclass(frozen=True)
class AttachmentRef:
    """Where an attachment lives and what it claims to be."""

    url: str
    name: str
    content_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        if self.content_type:
            return self.content_type.lower().startswith('image/')
        # Some uploads arrive without a mimetype; fall back to the extension.
        return self.name.lower().endswith(IMAGE_EXTENSIONS)

    @property
    def base_name(self) -> str:
        stem, dot, _ext = self.name.rpartition('.')
        return stem if dot and stem else self.name


@dataclass(frozen=True)
class InboundItem:
    """One message as seen by a single delivery event."""

    message_id: str
    channel_id: str
    parent_channel_id: Optional[str] = None
    attachments: Tuple[AttachmentRef, ...] = field(default_factory=tuple)
    partial: bool = False
    thread_id: Optional[str] = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)


@dataclass(frozen=True)
class ProcessedResult:
    data: bytes
    file_name: str
    label: str
