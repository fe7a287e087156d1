"""Loads the row keys (column A of the first worksheet) of a catalog package."""

import logging
from typing import Any, BinaryIO, List

from openpyxl import load_workbook

from .utils.exceptions import FormatError

logger = logging.getLogger(__name__)

KEY_COLUMN_INDEX = 0
HEADER_ROWS = 1


def normalize_row_key(value: Any) -> str:
    """Render a cell value as a row key string."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def load_row_keys(stream: BinaryIO) -> List[str]:
    """Read the ordered row keys of the first worksheet.

    The header row is skipped and falsy cells (None, "", 0) are dropped. Order is preserved;
    keys are neither sorted nor deduplicated.

    Args:
        stream: Binary stream over the whole package

    Returns:
        Row keys in sheet order

    Raises:
        FormatError: If the workbook cannot be loaded or has no worksheet
    """
    try:
        workbook = load_workbook(stream, read_only=True, data_only=True)
    except Exception as e:
        raise FormatError(f"Invalid Excel file format: {e}")

    try:
        if not workbook.worksheets:
            raise FormatError("Workbook has no worksheet")

        worksheet = workbook.worksheets[0]
        row_keys = []
        for row_index, row in enumerate(worksheet.iter_rows(values_only=True)):
            if row_index < HEADER_ROWS or not row:
                continue
            value = row[KEY_COLUMN_INDEX] if len(row) > KEY_COLUMN_INDEX else None
            # Only falsy cells are skipped; whitespace keys still occupy a row
            if not value:
                continue
            row_keys.append(normalize_row_key(value))

        logger.info(
            f"Loaded {len(row_keys)} row keys from sheet '{worksheet.title}'"
        )
        return row_keys
    finally:
        workbook.close()
