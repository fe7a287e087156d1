"""Extracts picture anchor positions from a spreadsheet drawing part."""

import logging
from typing import Dict, List, Optional, Union

from lxml import etree

from .models import DIAG_UNRESOLVED_REFERENCE, Diagnostic, ImageAnchor
from .relationship_resolver import parse_xml
from .utils.exceptions import UnresolvedReference

logger = logging.getLogger(__name__)

NAMESPACES = {
    "xdr": "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
}

EMBED_ATTRIBUTE = "{%s}embed" % NAMESPACES["r"]
ANCHOR_TAGS = (
    "{%s}twoCellAnchor" % NAMESPACES["xdr"],
    "{%s}oneCellAnchor" % NAMESPACES["xdr"],
)


def _read_int(parent: etree._Element, path: str) -> Optional[int]:
    element = parent.find(path, NAMESPACES)
    if element is None or element.text is None:
        return None
    try:
        return int(element.text.strip())
    except ValueError:
        return None


def _parse_anchor(anchor: etree._Element) -> Optional[ImageAnchor]:
    from_marker = anchor.find("xdr:from", NAMESPACES)
    if from_marker is None:
        return None

    row_index = _read_int(from_marker, "xdr:row")
    col_index = _read_int(from_marker, "xdr:col")
    if row_index is None or col_index is None:
        return None

    blip = anchor.find(".//xdr:pic/xdr:blipFill/a:blip", NAMESPACES)
    reference_id = blip.get(EMBED_ATTRIBUTE) if blip is not None else None
    if not reference_id:
        return None

    return ImageAnchor(
        row_index=row_index, col_index=col_index, reference_id=reference_id
    )


def extract_anchors(
    drawing_xml: Union[str, bytes], part_name: str = "drawing"
) -> List[ImageAnchor]:
    """Return picture anchors in document order.

    Anchors without a ``from`` marker, integer row/col, or an embedded
    picture reference (shapes, charts, connectors) are skipped.
    """
    root = parse_xml(drawing_xml, part_name)
    anchors = []
    skipped = 0

    for element in root.iter(*ANCHOR_TAGS):
        anchor = _parse_anchor(element)
        if anchor is None:
            skipped += 1
            continue
        anchors.append(anchor)
        logger.debug(
            f"Anchor {anchor.reference_id} at row {anchor.sheet_row}, "
            f"column {anchor.sheet_column}"
        )

    logger.info(
        f"Extracted {len(anchors)} picture anchors from {part_name}"
        + (f" ({skipped} non-picture anchors skipped)" if skipped else "")
    )
    return anchors


def filter_resolvable(
    anchors: List[ImageAnchor],
    relationship_map: Dict[str, str],
    diagnostics: List[Diagnostic],
    strict: bool = False,
) -> List[ImageAnchor]:
    """Drop anchors whose reference id has no image relationship entry."""
    resolvable = []
    for anchor in anchors:
        if anchor.reference_id in relationship_map:
            resolvable.append(anchor)
            continue

        if strict:
            raise UnresolvedReference(anchor.reference_id)

        error = UnresolvedReference(anchor.reference_id)
        logger.warning(f"Dropping anchor at row {anchor.sheet_row}: {error.message}")
        diagnostics.append(
            Diagnostic(
                kind=DIAG_UNRESOLVED_REFERENCE,
                message=error.message,
                reference_id=anchor.reference_id,
                sheet_row=anchor.sheet_row,
            )
        )
    return resolvable
