"""Collects materialized images into primary and supplier channels."""

import logging
from typing import List

from .models import ClassifiedImage, Diagnostic, ExtractionResult, ImageRole

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Accumulates images in arrival order, split by role."""

    def __init__(self) -> None:
        self.primary_images: List[ClassifiedImage] = []
        self.supplier_images: List[ClassifiedImage] = []

    def add(self, image: ClassifiedImage) -> None:
        if image.role is ImageRole.PRIMARY:
            self.primary_images.append(image)
        else:
            self.supplier_images.append(image)

    def build(
        self, row_keys: List[str], diagnostics: List[Diagnostic]
    ) -> ExtractionResult:
        result = ExtractionResult(
            primary_images=list(self.primary_images),
            supplier_images=list(self.supplier_images),
            diagnostics=list(diagnostics),
            row_keys=list(row_keys),
        )
        logger.info(
            f"Extracted {result.primary_count} primary and "
            f"{result.supplier_count} supplier images for "
            f"{result.row_count} rows ({len(result.diagnostics)} anchors dropped)"
        )
        return result
