"""Catalog Image Extractor - binds embedded spreadsheet images to catalog rows."""

from .image_extractor import (
    ImageExtractor,
    extract_primary_images,
    extract_row_images,
    extract_supplier_images,
)
from .models import ClassifiedImage, Diagnostic, ExtractionResult, ImageAnchor, ImageRole

__version__ = "0.1.0"

__all__ = [
    "ImageExtractor",
    "extract_row_images",
    "extract_primary_images",
    "extract_supplier_images",
    "ClassifiedImage",
    "Diagnostic",
    "ExtractionResult",
    "ImageAnchor",
    "ImageRole",
]
