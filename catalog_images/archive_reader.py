"""Read-only access to the parts of a zip-based spreadsheet package."""

import fnmatch
import io
import logging
import posixpath
import re
import zipfile
from typing import BinaryIO, List, Optional, Tuple, Union

from .relationship_resolver import parse_xml, resolve_part_targets
from .utils.exceptions import FormatError, PartNotFound

logger = logging.getLogger(__name__)

DRAWING_RELS_PATTERN = "*/drawings/_rels/*.xml.rels"
DRAWING_PATTERN = "*/drawings/*.xml"
NO_DRAWING_ERROR_CODE = "no_drawing"
WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"
WORKSHEET_RELATIONSHIP_SUFFIX = "/worksheet"
DRAWING_RELATIONSHIP_SUFFIX = "/drawing"
RELATIONSHIP_ID_ATTRIBUTE = (
    "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}id"
)


def _natural_key(name: str) -> List[Union[int, str]]:
    """Sort key placing drawing2.xml before drawing10.xml."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


class ArchiveReader:
    """Indexes a package once and serves its parts by name or pattern."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._zip = zipfile.ZipFile(io.BytesIO(data))
        # Central directory is fully indexed before any part is accessed
        self._names = [
            info.filename for info in self._zip.infolist() if not info.is_dir()
        ]

    @classmethod
    def open(cls, source: Union[bytes, bytearray, BinaryIO]) -> "ArchiveReader":
        """Open a package from raw bytes or a binary file-like object."""
        try:
            if isinstance(source, (bytes, bytearray)):
                data = bytes(source)
            else:
                if hasattr(source, "seek"):
                    source.seek(0)
                data = source.read()
            reader = cls(data)
        except (zipfile.BadZipFile, OSError, ValueError, TypeError) as e:
            raise FormatError(f"Package is not a readable zip archive: {e}")

        logger.debug(f"Opened package with {len(reader._names)} parts")
        return reader

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def as_stream(self) -> BinaryIO:
        """Fresh in-memory stream over the whole package."""
        return io.BytesIO(self._data)

    def names(self) -> List[str]:
        return list(self._names)

    def has(self, part_name: str) -> bool:
        return part_name in self._names

    def get(self, part_name: str) -> bytes:
        """Return the raw bytes of a part."""
        if part_name not in self._names:
            raise PartNotFound(part_name)
        try:
            return self._zip.read(part_name)
        except (zipfile.BadZipFile, OSError) as e:
            raise FormatError(f"Failed to read part {part_name}: {e}")

    def get_text(self, part_name: str, encoding: str = "utf-8") -> str:
        return self.get(part_name).decode(encoding)

    def find(self, pattern: str) -> List[str]:
        """Return part names matching a glob pattern, in natural order."""
        matches = [name for name in self._names if fnmatch.fnmatchcase(name, pattern)]
        return sorted(matches, key=_natural_key)

    def first_worksheet_part(self) -> Optional[str]:
        """Part name of the first worksheet in workbook order, if resolvable."""
        if not self.has(WORKBOOK_PART) or not self.has(WORKBOOK_RELS_PART):
            return None

        workbook = parse_xml(self.get(WORKBOOK_PART), WORKBOOK_PART)
        sheet = next(workbook.iter("{*}sheet"), None)
        if sheet is None:
            return None

        targets = resolve_part_targets(
            self.get(WORKBOOK_RELS_PART),
            WORKSHEET_RELATIONSHIP_SUFFIX,
            posixpath.dirname(WORKBOOK_PART),
            part_name=WORKBOOK_RELS_PART,
        )
        sheet_part = targets.get(sheet.get(RELATIONSHIP_ID_ATTRIBUTE))
        return sheet_part if sheet_part and self.has(sheet_part) else None

    def worksheet_drawing(self, sheet_part: str) -> Optional[str]:
        """Drawing part attached to a worksheet, or None."""
        sheet_rels = self._sibling_rels(sheet_part)
        if sheet_rels is None:
            return None

        targets = resolve_part_targets(
            self.get(sheet_rels),
            DRAWING_RELATIONSHIP_SUFFIX,
            posixpath.dirname(sheet_part),
            part_name=sheet_rels,
        )
        for drawing in targets.values():
            if self.has(drawing):
                return drawing
        return None

    def locate_drawing_parts(self) -> Tuple[str, str]:
        """Find the drawing relationships part and the drawing part.

        The drawing is the one attached to the first worksheet. Packages
        without a resolvable workbook fall back to the lowest-numbered drawing.

        Returns:
            Tuple of (relationships part name, drawing part name)

        Raises:
            FormatError: If either part is absent
        """
        sheet_part = self.first_worksheet_part()
        if sheet_part is not None:
            drawing = self.worksheet_drawing(sheet_part)
            rels_part = self._sibling_rels(drawing) if drawing else None
            if drawing is None or rels_part is None:
                raise FormatError("no drawing found", error_code=NO_DRAWING_ERROR_CODE)
            logger.debug(
                f"Drawing part for {sheet_part}: {drawing}, "
                f"relationships part: {rels_part}"
            )
            return rels_part, drawing

        drawings = [
            name
            for name in self.find(DRAWING_PATTERN)
            if "/_rels/" not in name and not name.endswith(".rels")
        ]
        rels_parts = self.find(DRAWING_RELS_PATTERN)

        if not drawings or not rels_parts:
            raise FormatError("no drawing found", error_code=NO_DRAWING_ERROR_CODE)

        drawing = drawings[0]
        rels_part = self._sibling_rels(drawing) or rels_parts[0]

        if len(drawings) > 1:
            logger.info(
                f"Package has {len(drawings)} drawings, using {drawing}"
            )
        logger.debug(f"Drawing part: {drawing}, relationships part: {rels_part}")
        return rels_part, drawing

    def _sibling_rels(self, part_name: str) -> Optional[str]:
        directory, filename = posixpath.split(part_name)
        candidate = posixpath.join(directory, "_rels", f"{filename}.rels")
        return candidate if candidate in self._names else None
