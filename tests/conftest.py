"""Pytest configuration.

Tests import modules from the repository root (e.g. `from framebot.borders import scan`).
When pytest runs from outside the repo the root isn't always on `sys.path`, so it
is added here. Image helpers below build test images in memory with Pillow.
"""

import io
import os
import sys

from PIL import Image

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

WHITE = (255, 255, 255)
CONTENT = (40, 90, 160)


def framed_image(width, height, margin, content=CONTENT, background=WHITE):
    """RGB image: `background` frame `margin` px thick around a solid `content` block."""
    img = Image.new('RGB', (width, height), background)
    if margin:
        inner = Image.new('RGB', (width - 2 * margin, height - 2 * margin), content)
        img.paste(inner, (margin, margin))
    else:
        img.paste(Image.new('RGB', (width, height), content))
    return img


def to_bytes(img, fmt='PNG', **kwargs):
    buf = io.BytesIO()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()
