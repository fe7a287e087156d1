"""Resolves package relationship ids to media file names and part names."""

import logging
import posixpath
from typing import Dict, List, Optional, Union

from lxml import etree

from .models import RelationshipEntry
from .utils.exceptions import FormatError

logger = logging.getLogger(__name__)

IMAGE_TARGET_MARKER = "image"
IMAGE_RELATIONSHIP_SUFFIX = "/image"


def parse_xml(content: Union[str, bytes], part_name: str) -> etree._Element:
    """Parse a package XML part, mapping parser errors to FormatError."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as e:
        raise FormatError(f"Malformed XML in {part_name}: {e}")


def is_image_relationship(
    relationship_type: Optional[str], target: str, target_marker: str = IMAGE_TARGET_MARKER
) -> bool:
    """Decide by relationship Type, or by the target path when Type is absent."""
    if relationship_type:
        return relationship_type.endswith(IMAGE_RELATIONSHIP_SUFFIX)
    return target_marker in target


def resolve_relationships(
    rels_xml: Union[str, bytes],
    target_marker: str = IMAGE_TARGET_MARKER,
    part_name: str = "drawing relationships",
) -> Dict[str, str]:
    """Map relationship id to media file name for image relationships only.

    Elements without an Id or Target are skipped. Relationships typed as
    anything other than an image (charts, hyperlinks, ...) are excluded;
    untyped ones are kept when their target contains ``target_marker``.
    """
    root = parse_xml(rels_xml, part_name)
    relationship_map: Dict[str, str] = {}

    for element in root.iter("{*}Relationship"):
        reference_id = element.get("Id")
        target = element.get("Target")
        if not reference_id or not target:
            logger.debug(f"Skipping relationship without Id or Target in {part_name}")
            continue
        if not is_image_relationship(element.get("Type"), target, target_marker):
            logger.debug(f"Skipping non-image relationship {reference_id} -> {target}")
            continue
        relationship_map[reference_id] = posixpath.basename(target.replace("\\", "/"))

    logger.info(f"Resolved {len(relationship_map)} image relationships from {part_name}")
    return relationship_map


def resolve_part_targets(
    rels_xml: Union[str, bytes],
    type_suffix: str,
    base_directory: str,
    part_name: str = "relationships",
) -> Dict[str, str]:
    """Map relationship id to the package part name it points at.

    Only relationships whose Type ends with ``type_suffix`` are kept. Relative
    targets are resolved against ``base_directory``; absolute ones against the
    package root.
    """
    root = parse_xml(rels_xml, part_name)
    targets: Dict[str, str] = {}

    for element in root.iter("{*}Relationship"):
        reference_id = element.get("Id")
        target = (element.get("Target") or "").replace("\\", "/")
        if not reference_id or not target:
            continue
        if not element.get("Type", "").endswith(type_suffix):
            continue
        if target.startswith("/"):
            targets[reference_id] = target.lstrip("/")
        else:
            targets[reference_id] = posixpath.normpath(
                posixpath.join(base_directory, target)
            )
    return targets


def relationship_entries(relationship_map: Dict[str, str]) -> List[RelationshipEntry]:
    return [
        RelationshipEntry(reference_id=reference_id, media_file_name=media_name)
        for reference_id, media_name in relationship_map.items()
    ]
