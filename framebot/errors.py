"""Per-attachment failure taxonomy.

None of these are fatal to the process: the pipeline catches them at the
attachment loop boundary and reports them.
"""


class FrameBotError(Exception):
    """Base class for attachment processing failures."""


class FetchError(FrameBotError):
    """Attachment bytes could not be downloaded."""


class DecodeError(FrameBotError):
    """Bytes are not a valid or supported image."""


class GeometryError(FrameBotError):
    """A crop or resize rectangle falls outside the image bounds."""


class EncodeError(FrameBotError):
    """The result could not be encoded, even in the fallback format."""
