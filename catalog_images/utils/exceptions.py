"""Custom exceptions for Catalog Image Extractor."""

from typing import Optional


class CatalogImageError(Exception):
    """Base exception for Catalog Image Extractor operations."""

    def __init__(self, message: str, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class FileProcessingError(CatalogImageError):
    """Exception raised for file processing errors."""

    pass


class FormatError(FileProcessingError):
    """Package is unreadable or a mandatory part is missing.

    Fatal: extraction aborts before any output is produced.
    """

    pass


class PartNotFound(FileProcessingError):
    """Exception raised when a named part is absent from the package."""

    def __init__(self, part_name: str, error_code: Optional[str] = None) -> None:
        super().__init__(f"Part not found in package: {part_name}", error_code)
        self.part_name = part_name


class MediaNotFound(PartNotFound):
    """Exception raised when an anchor's media file is absent from the package."""

    pass


class AnchorResolutionError(CatalogImageError):
    """Exception raised when an anchor cannot be bound to a row or media file."""

    pass


class UnresolvedReference(AnchorResolutionError):
    """Anchor reference id has no image relationship entry."""

    def __init__(self, reference_id: str, error_code: Optional[str] = None) -> None:
        super().__init__(
            f"No image relationship for reference id: {reference_id}", error_code
        )
        self.reference_id = reference_id


class OutOfRangeRow(AnchorResolutionError):
    """Anchor resolves to a row outside the row-key list."""

    def __init__(self, sheet_row: int, error_code: Optional[str] = None) -> None:
        super().__init__(f"Anchor row {sheet_row} has no matching row key", error_code)
        self.sheet_row = sheet_row


class ExtractionCancelled(CatalogImageError):
    """Exception raised when a caller cancels an extraction in progress."""

    pass


class ConfigurationError(CatalogImageError):
    """Exception raised for configuration-related errors."""

    pass


class ValidationError(CatalogImageError):
    """Exception raised for validation errors."""

    pass


class APIError(CatalogImageError):
    """Exception raised for API-related errors."""

    pass


class AuthenticationError(APIError):
    """Exception raised for authentication errors."""

    pass
