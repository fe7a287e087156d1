"""Input validation utilities for Catalog Image Extractor."""

import re
from typing import Any, Dict, Optional

from jsonschema import validate, ValidationError as JsonSchemaValidationError

from .exceptions import ValidationError

EXTRACTION_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "version": {"type": "string"},
        "extraction": {
            "type": "object",
            "properties": {
                "media_directory": {"type": "string", "minLength": 1},
                "supplier_suffix": {"type": "string"},
                "image_target_marker": {"type": "string", "minLength": 1},
                "max_workers": {"type": "integer", "minimum": 1},
                "strict": {"type": "boolean"},
                "retain_payloads": {"type": ["boolean", "null"]},
            },
            "additionalProperties": False,
        },
        "output": {
            "type": "object",
            "properties": {
                "directory": {"type": "string"},
                "write_manifest": {"type": "boolean"},
                "manifest_name": {"type": "string"},
            },
        },
    },
    "required": ["extraction"],
}


def validate_json_schema(data: Dict[str, Any], schema: Dict[str, Any]) -> None:
    """Validate data against JSON schema."""
    try:
        validate(instance=data, schema=schema)
    except JsonSchemaValidationError as e:
        raise ValidationError(f"Schema validation failed: {e.message}")


def validate_extraction_config(config: Dict[str, Any]) -> None:
    """Validate extraction configuration structure."""
    validate_json_schema(config, EXTRACTION_CONFIG_SCHEMA)


def validate_api_request(
    files: Dict[str, Any], form: Optional[Dict[str, Any]] = None
) -> None:
    """Validate an extraction API request."""
    file_obj = files.get("file") if files else None
    if file_obj is None or not getattr(file_obj, "filename", None):
        raise ValidationError("An Excel file is required in the 'file' field")

    form = form or {}
    workers = form.get("max_workers")
    if workers is not None and workers != "":
        try:
            if int(workers) < 1:
                raise ValueError
        except (TypeError, ValueError):
            raise ValidationError("max_workers must be a positive integer")


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret a form or environment flag."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes", "on")


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe file system usage."""
    if not filename:
        return "unnamed_file"

    # Remove or replace dangerous characters
    sanitized = re.sub(r'[<>:"/\\|?*]', "_", filename)

    # Remove control characters
    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", sanitized)

    sanitized = sanitized[:255]

    return sanitized or "unnamed_file"

