# hike/services/images.py
from __future__ import annotations

import base64
import binascii
import logging
import re
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from hike.models.types import InlineImage

logger = logging.getLogger("hike.images")

_DATA_URL = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)

ANALYSIS_MAX_EDGE = 800
VIDEO_MAX_EDGE = 1024
JPEG_QUALITY = 80


def parse_data_url(data_url: str) -> Optional[InlineImage]:
    """`data:image/png;base64,....` -> InlineImage, or None if it isn't one."""
    if not data_url:
        return None
    m = _DATA_URL.match(data_url.strip())
    if not m:
        return None
    return InlineImage(mime_type=m.group(1), data=re.sub(r"\s+", "", m.group(2)))


def resize_image(raw: bytes, max_edge: int = ANALYSIS_MAX_EDGE) -> bytes:
    """Cap the long edge at `max_edge` and re-encode as JPEG."""
    with Image.open(BytesIO(raw)) as img:
        img = img.convert("RGB")
        if max(img.size) > max_edge:
            img.thumbnail((max_edge, max_edge), Image.LANCZOS)
        buf = BytesIO()
        img.save(buf, format="JPEG", quality=JPEG_QUALITY)
        return buf.getvalue()


def prepare_image(data_url: Optional[str], max_edge: int = ANALYSIS_MAX_EDGE) -> Optional[InlineImage]:
    """
    Turn an uploaded data URL into a bounded JPEG payload.

    Unparseable input yields None; an image Pillow cannot open is passed
    through unchanged.
    """
    parsed = parse_data_url(data_url or "")
    if parsed is None:
        return None
    try:
        raw = base64.b64decode(parsed.data, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("dropping image with invalid base64 payload")
        return None
    try:
        resized = resize_image(raw, max_edge)
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("image resize failed, sending original: %s", e)
        return parsed
    return InlineImage(mime_type="image/jpeg", data=base64.b64encode(resized).decode("ascii"))
