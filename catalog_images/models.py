"""Data model shared by the extraction pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd


class ImageRole(str, Enum):
    """Role of an image within its row, assigned by ordinal position."""

    PRIMARY = "primary"
    SUPPLIER = "supplier"


# Diagnostic kinds
DIAG_UNRESOLVED_REFERENCE = "unresolved_reference"
DIAG_MEDIA_NOT_FOUND = "media_not_found"
DIAG_OUT_OF_RANGE_ROW = "out_of_range_row"
DIAG_EXCESS_ANCHOR = "excess_anchor"


@dataclass(frozen=True)
class RelationshipEntry:
    """Maps a short relationship id to a media file name."""

    reference_id: str
    media_file_name: str


@dataclass(frozen=True)
class ImageAnchor:
    """Grid position of an embedded picture, as stored in the drawing part.

    ``row_index`` and ``col_index`` are the raw 0-based XML values.
    """

    row_index: int
    col_index: int
    reference_id: str

    @property
    def sheet_row(self) -> int:
        return self.row_index + 1

    @property
    def sheet_column(self) -> int:
        return self.col_index + 1


@dataclass(frozen=True)
class ClassifiedAnchor:
    """An anchor bound to a row key and role, before its bytes are fetched."""

    row_key: str
    row_position: int
    role: ImageRole
    anchor: ImageAnchor
    media_file_name: str
    derived_output_name: str


@dataclass
class ClassifiedImage:
    """An extracted image bound to a row key and a role."""

    row_key: str
    role: ImageRole
    original_media_name: str
    derived_output_name: str
    payload: Optional[bytes]
    row_position: int
    sheet_row: int
    sheet_column: int

    @property
    def size(self) -> int:
        return len(self.payload) if self.payload is not None else 0

    def to_dict(self, include_payload: bool = False) -> Dict[str, Any]:
        data = {
            "row_key": self.row_key,
            "role": self.role.value,
            "original_media_name": self.original_media_name,
            "derived_output_name": self.derived_output_name,
            "row_position": self.row_position,
            "sheet_row": self.sheet_row,
            "sheet_column": self.sheet_column,
            "size": self.size,
        }
        if include_payload:
            data["payload"] = self.payload
        return data


@dataclass
class Diagnostic:
    """Record of an anchor dropped during extraction."""

    kind: str
    message: str
    reference_id: Optional[str] = None
    sheet_row: Optional[int] = None
    media_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "reference_id": self.reference_id,
            "sheet_row": self.sheet_row,
            "media_name": self.media_name,
        }


@dataclass
class ExtractionResult:
    """Primary and supplier images produced by one extraction call."""

    primary_images: List[ClassifiedImage] = field(default_factory=list)
    supplier_images: List[ClassifiedImage] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    row_keys: List[str] = field(default_factory=list)

    @property
    def primary_count(self) -> int:
        return len(self.primary_images)

    @property
    def supplier_count(self) -> int:
        return len(self.supplier_images)

    @property
    def total(self) -> int:
        return self.primary_count + self.supplier_count

    @property
    def row_count(self) -> int:
        return len(self.row_keys)

    def summary(self) -> Dict[str, Any]:
        """Counts an operator can use to judge completeness of an import."""
        rows_with_images = {
            image.row_position
            for image in self.primary_images + self.supplier_images
        }
        diagnostic_counts: Dict[str, int] = {}
        for diagnostic in self.diagnostics:
            diagnostic_counts[diagnostic.kind] = (
                diagnostic_counts.get(diagnostic.kind, 0) + 1
            )

        return {
            "row_count": self.row_count,
            "rows_with_images": len(rows_with_images),
            "primary_count": self.primary_count,
            "supplier_count": self.supplier_count,
            "total": self.total,
            "dropped_anchors": len(self.diagnostics),
            "diagnostics_by_kind": diagnostic_counts,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Manifest with one line per extracted image, in row order."""
        columns = [
            "row_key",
            "role",
            "original_media_name",
            "derived_output_name",
            "row_position",
            "sheet_row",
            "sheet_column",
            "size",
        ]
        records = [
            image.to_dict() for image in self.primary_images + self.supplier_images
        ]
        if not records:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame.from_records(records, columns=columns)
        return df.sort_values(
            by=["row_position", "role"], kind="mergesort"
        ).reset_index(drop=True)
