"""
Base64 image codec and the background removal call.
"""

import base64
import binascii
import io
import logging
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"

# rembg session, created on first use
_session: Optional[Any] = None
_session_model: Optional[str] = None


def decode_image(data: str) -> Image.Image:
    """Decode a base64 string (optionally a data URI) into a PIL image.

    Raises:
        ValueError: If the data is not valid base64 or not a readable image
    """
    if data.startswith(DATA_URI_PREFIX):
        _, _, data = data.partition(",")
    # Line-wrapped base64 (RFC 2045, `base64` CLI output)
    data = "".join(data.split())

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e

    if not raw:
        raise ValueError("Image data is empty")

    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Cannot decode image: {e}") from e
    return image


def encode_image(image: Image.Image, format: str = "PNG") -> str:
    """Encode a PIL image as a base64 string."""
    buffer = io.BytesIO()
    image.save(buffer, format=format)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def get_session(model: str = "u2net") -> Any:
    """Get the shared rembg session, creating it for ``model`` if needed."""
    global _session, _session_model

    if _session is None or _session_model != model:
        from rembg import new_session

        logger.info(f"Loading rembg model {model}")
        _session = new_session(model)
        _session_model = model
    return _session


def remove_background(image: Image.Image, model: str = "u2net") -> Image.Image:
    """Remove the background of an image with rembg.

    Returns an RGBA image with a transparent background.
    """
    from rembg import remove

    return remove(image, session=get_session(model))
