"""Row-bound image extraction from catalog spreadsheets."""

import logging
from contextlib import closing
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Union

from .anchor_extractor import extract_anchors, filter_resolvable
from .archive_reader import NO_DRAWING_ERROR_CODE, ArchiveReader
from .config_manager import DEFAULT_EXTRACTION_SETTINGS
from .key_table_loader import load_row_keys
from .media_materializer import MediaMaterializer
from .models import (
    DIAG_MEDIA_NOT_FOUND,
    ClassifiedImage,
    Diagnostic,
    ExtractionResult,
    ImageRole,
)
from .relationship_resolver import resolve_relationships
from .result_aggregator import ResultAggregator
from .row_classifier import classify_anchors, group_by_role
from .utils.exceptions import FormatError, MediaNotFound

logger = logging.getLogger(__name__)


class ImageExtractor:
    """Extracts primary and supplier images per catalog row from an xlsx package.

    All state lives on the instance for the duration of one call, so
    independent extractors can run concurrently.
    """

    def __init__(
        self,
        file_input: Union[bytes, BinaryIO],
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize extractor with package bytes or a binary file-like object.

        Args:
            file_input: The xlsx package
            settings: Overrides for DEFAULT_EXTRACTION_SETTINGS
        """
        self.file_input = file_input
        self.settings = dict(DEFAULT_EXTRACTION_SETTINGS)
        if settings:
            self.settings.update(settings)

    def extract(
        self,
        on_image: Optional[Callable[[ClassifiedImage], None]] = None,
        cancel_event=None,
        role: Optional[ImageRole] = None,
    ) -> ExtractionResult:
        """Run the full extraction pass.

        Args:
            on_image: Optional callback receiving each image as it is read
            cancel_event: Optional ``threading.Event``, checked between rows
            role: Restrict output to one role

        Returns:
            ExtractionResult with both image channels and diagnostics

        Raises:
            FormatError: If the package or its worksheet is unreadable
            ExtractionCancelled: If ``cancel_event`` is set mid-run
        """
        strict = self.settings["strict"]
        retain_payloads = self.settings["retain_payloads"]
        if retain_payloads is None:
            retain_payloads = on_image is None

        with ArchiveReader.open(self.file_input) as reader:
            diagnostics: List[Diagnostic] = []
            aggregator = ResultAggregator()

            try:
                rels_part, drawing_part = reader.locate_drawing_parts()
            except FormatError as e:
                if e.error_code != NO_DRAWING_ERROR_CODE:
                    raise
                logger.info("No drawing found in package, no images to extract")
                row_keys = load_row_keys(reader.as_stream())
                return aggregator.build(row_keys, diagnostics)

            relationship_map = resolve_relationships(
                reader.get(rels_part),
                target_marker=self.settings["image_target_marker"],
                part_name=rels_part,
            )
            anchors = extract_anchors(reader.get(drawing_part), part_name=drawing_part)
            row_keys = load_row_keys(reader.as_stream())

            anchors = filter_resolvable(anchors, relationship_map, diagnostics, strict)
            classified = classify_anchors(
                anchors,
                row_keys,
                relationship_map,
                diagnostics,
                supplier_suffix=self.settings["supplier_suffix"],
                cancel_event=cancel_event,
                strict=strict,
            )
            classified = group_by_role(classified, role)

            materializer = MediaMaterializer(reader, self.settings["media_directory"])
            outcomes = materializer.materialize_all(
                classified,
                on_image=on_image,
                max_workers=self.settings["max_workers"],
                cancel_event=cancel_event,
                retain_payloads=retain_payloads,
            )
            # Closed before the archive so no worker reads a closed zip
            with closing(outcomes):
                for item, outcome in outcomes:
                    if isinstance(outcome, MediaNotFound):
                        if strict:
                            raise outcome
                        logger.warning(
                            f"Dropping {item.role.value} image for '{item.row_key}': "
                            f"{outcome.message}"
                        )
                        diagnostics.append(
                            Diagnostic(
                                kind=DIAG_MEDIA_NOT_FOUND,
                                message=outcome.message,
                                reference_id=item.anchor.reference_id,
                                sheet_row=item.anchor.sheet_row,
                                media_name=item.media_file_name,
                            )
                        )
                        continue
                    aggregator.add(outcome)

            return aggregator.build(row_keys, diagnostics)


def extract_row_images(
    file_input: Union[bytes, BinaryIO],
    on_image: Optional[Callable[[ClassifiedImage], None]] = None,
    cancel_event=None,
    **settings: Any,
) -> ExtractionResult:
    """Extract primary and supplier images bound to each catalog row."""
    extractor = ImageExtractor(file_input, settings)
    return extractor.extract(on_image=on_image, cancel_event=cancel_event)


def extract_primary_images(
    file_input: Union[bytes, BinaryIO], **settings: Any
) -> List[ClassifiedImage]:
    """Extract only the primary image of each row."""
    extractor = ImageExtractor(file_input, settings)
    return extractor.extract(role=ImageRole.PRIMARY).primary_images


def extract_supplier_images(
    file_input: Union[bytes, BinaryIO], **settings: Any
) -> List[ClassifiedImage]:
    """Extract only the supplier image of each row."""
    extractor = ImageExtractor(file_input, settings)
    return extractor.extract(role=ImageRole.SUPPLIER).supplier_images
