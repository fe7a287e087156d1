"""Binds picture anchors to catalog rows and assigns primary/supplier roles."""

import logging
import posixpath
from collections import defaultdict
from typing import Dict, List, Optional

from .models import (
    DIAG_EXCESS_ANCHOR,
    DIAG_OUT_OF_RANGE_ROW,
    ClassifiedAnchor,
    Diagnostic,
    ImageAnchor,
    ImageRole,
)
from .utils.exceptions import ExtractionCancelled, OutOfRangeRow

logger = logging.getLogger(__name__)

# Sheet row 1 is the header, so sheet row 2 holds row key 0
FIRST_DATA_SHEET_ROW = 2
ROLES_BY_POSITION = (ImageRole.PRIMARY, ImageRole.SUPPLIER)
DEFAULT_SUPPLIER_SUFFIX = "_supplier"


def media_extension(media_name: str) -> str:
    """Extension of a media file name without the dot, or '' if none."""
    return posixpath.splitext(media_name)[1].lstrip(".")


def derive_output_name(
    row_key: str,
    role: ImageRole,
    media_name: str,
    supplier_suffix: str = DEFAULT_SUPPLIER_SUFFIX,
) -> str:
    """Build '<rowKey>.<ext>' or '<rowKey><suffix>.<ext>' for a classified image."""
    base = row_key if role is ImageRole.PRIMARY else f"{row_key}{supplier_suffix}"
    extension = media_extension(media_name)
    return f"{base}.{extension}" if extension else base


def row_key_index(sheet_row: int) -> int:
    return sheet_row - FIRST_DATA_SHEET_ROW


def classify_anchors(
    anchors: List[ImageAnchor],
    row_keys: List[str],
    relationship_map: Dict[str, str],
    diagnostics: List[Diagnostic],
    supplier_suffix: str = DEFAULT_SUPPLIER_SUFFIX,
    cancel_event=None,
    strict: bool = False,
) -> List[ClassifiedAnchor]:
    """Assign anchors to rows and roles.

    Anchors are grouped by sheet row and ordered by their raw column value.
    The first anchor of a row becomes the primary image, the second the
    supplier image; further anchors are dropped. The absolute column value is
    never used to pick the role, only the ordering it implies.

    Args:
        anchors: Resolvable picture anchors in document order
        row_keys: Row keys in sheet order
        relationship_map: Reference id to media file name
        diagnostics: Receives one entry per dropped anchor
        supplier_suffix: Suffix appended to the row key for supplier images
        cancel_event: Optional object with ``is_set()``, checked between rows
        strict: Raise OutOfRangeRow instead of dropping

    Returns:
        Classified anchors ordered by sheet row, primary before supplier
    """
    by_row: Dict[int, List[ImageAnchor]] = defaultdict(list)
    for anchor in anchors:
        by_row[anchor.sheet_row].append(anchor)

    classified: List[ClassifiedAnchor] = []

    for sheet_row in sorted(by_row):
        if cancel_event is not None and cancel_event.is_set():
            raise ExtractionCancelled(
                f"Extraction cancelled before sheet row {sheet_row}"
            )

        row_anchors = by_row[sheet_row]
        index = row_key_index(sheet_row)
        if index < 0 or index >= len(row_keys):
            if strict:
                raise OutOfRangeRow(sheet_row)
            logger.debug(
                f"Dropping {len(row_anchors)} anchor(s) at sheet row {sheet_row}: "
                f"outside {len(row_keys)} row keys"
            )
            for anchor in row_anchors:
                diagnostics.append(
                    Diagnostic(
                        kind=DIAG_OUT_OF_RANGE_ROW,
                        message=OutOfRangeRow(sheet_row).message,
                        reference_id=anchor.reference_id,
                        sheet_row=sheet_row,
                    )
                )
            continue

        row_key = row_keys[index]
        # sorted() is stable, equal columns keep document order
        ordered = sorted(row_anchors, key=lambda a: a.col_index)

        for position, anchor in enumerate(ordered):
            media_name = relationship_map[anchor.reference_id]
            if position >= len(ROLES_BY_POSITION):
                logger.warning(
                    f"Row {sheet_row} ('{row_key}') has more than "
                    f"{len(ROLES_BY_POSITION)} images, ignoring {media_name}"
                )
                diagnostics.append(
                    Diagnostic(
                        kind=DIAG_EXCESS_ANCHOR,
                        message=f"Extra image in row {sheet_row} ignored",
                        reference_id=anchor.reference_id,
                        sheet_row=sheet_row,
                        media_name=media_name,
                    )
                )
                continue

            role = ROLES_BY_POSITION[position]
            output_name = derive_output_name(row_key, role, media_name, supplier_suffix)
            classified.append(
                ClassifiedAnchor(
                    row_key=row_key,
                    row_position=index,
                    role=role,
                    anchor=anchor,
                    media_file_name=media_name,
                    derived_output_name=output_name,
                )
            )
            logger.debug(
                f"Row {sheet_row}, column {anchor.sheet_column}: "
                f"'{row_key}' {role.value} -> {media_name}"
            )

    logger.info(
        f"Classified {len(classified)} images across {len(by_row)} anchored rows"
    )
    return classified


def group_by_role(
    classified: List[ClassifiedAnchor], role: Optional[ImageRole] = None
) -> List[ClassifiedAnchor]:
    """Classified anchors of one role, preserving order."""
    if role is None:
        return list(classified)
    return [item for item in classified if item.role is role]
