"""File handling utilities for Catalog Image Extractor."""

import os
from pathlib import Path
from typing import BinaryIO, Iterable, List, Union
import logging
from werkzeug.datastructures import FileStorage

from ..models import ClassifiedImage
from .exceptions import FileProcessingError
from .validation import sanitize_filename

logger = logging.getLogger(__name__)


def validate_file_extension(filename: str, allowed_extensions: List[str]) -> bool:
    """Validate file extension against allowed list."""
    if not filename:
        return False

    extension = Path(filename).suffix.lower().lstrip(".")
    return extension in [ext.lower().lstrip(".") for ext in allowed_extensions]


def validate_file_size(
    file_obj: Union[BinaryIO, FileStorage], max_size_mb: int
) -> bool:
    """Validate file size against maximum allowed size."""
    try:
        if hasattr(file_obj, "seek") and hasattr(file_obj, "tell"):
            current_pos = file_obj.tell()
            file_obj.seek(0, 2)  # Seek to end
            file_size = file_obj.tell()
            file_obj.seek(current_pos)
        elif hasattr(file_obj, "content_length") and file_obj.content_length:
            file_size = file_obj.content_length
        else:
            return True  # Can't determine size, allow it

        max_size_bytes = max_size_mb * 1024 * 1024
        return file_size <= max_size_bytes
    except Exception as e:
        logger.warning(f"Could not validate file size: {e}")
        return True


def ensure_directory_exists(directory_path: str) -> None:
    """Ensure directory exists, create if it doesn't."""
    try:
        os.makedirs(directory_path, exist_ok=True)
    except Exception as e:
        raise FileProcessingError(f"Failed to create directory {directory_path}: {e}")


def save_images_to_directory(
    images: Iterable[ClassifiedImage], directory: str
) -> List[str]:
    """Write images to a directory.

    Duplicate row keys produce the same derived name; later files get a
    numeric suffix instead of overwriting earlier ones.
    """
    ensure_directory_exists(directory)
    saved = []
    for image in images:
        path = write_image(image, directory)
        saved.append(path)

    logger.info(f"Saved {len(saved)} images to {directory}")
    return saved


def write_image(image: ClassifiedImage, directory: str) -> str:
    """Write one image under its derived output name and return the path."""
    if image.payload is None:
        raise FileProcessingError(
            f"Image {image.derived_output_name} has no payload to write"
        )
    filename = sanitize_filename(image.derived_output_name)
    stem, extension = os.path.splitext(filename)
    candidate = os.path.join(directory, filename)
    counter = 2
    while os.path.exists(candidate):
        candidate = os.path.join(directory, f"{stem}_{counter}{extension}")
        counter += 1

    try:
        with open(candidate, "wb") as output_file:
            output_file.write(image.payload)
    except OSError as e:
        raise FileProcessingError(f"Failed to write image {candidate}: {e}")

    logger.debug(f"Saved image to disk: {candidate}")
    return candidate
