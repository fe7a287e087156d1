"""Image format detection and preview encoding."""

import base64
import io
import logging

from PIL import Image as PILImage, UnidentifiedImageError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
}


def detect_image_format(image_data: bytes, fallback: str = "png") -> str:
    """Detect image format from binary data.

    Args:
        image_data: Binary image data
        fallback: Format returned when detection fails

    Returns:
        Image format as a lowercase string (e.g., 'png', 'jpeg')
    """
    try:
        with io.BytesIO(image_data) as image_stream:
            pil_image = PILImage.open(image_stream)
            if pil_image.format:
                return pil_image.format.lower()
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not detect image format: {e}")

    logger.warning(f"Could not detect image format, defaulting to {fallback}")
    return fallback


def encode_image_as_base64(image_data: bytes, img_format: str) -> str:
    """Encode image data as a data URI with the matching MIME type."""
    mime_format = img_format.lower()
    if mime_format == "jpg":
        mime_format = "jpeg"

    mime_type = MIME_TYPES.get(mime_format, "image/png")
    base64_encoded = base64.b64encode(image_data).decode("utf-8")
    return f"data:{mime_type};base64,{base64_encoded}"
