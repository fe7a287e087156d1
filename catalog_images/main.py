"""Main API handler with Flask, Cloud Function and CLI entry points."""

import datetime
import json
import logging
import os
import traceback
from typing import Any, Dict, Tuple

import click
from flask import Flask, request, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from .config_manager import ConfigManager
from .image_extractor import ImageExtractor
from .models import ClassifiedImage, ExtractionResult
from .utils.exceptions import (
    AuthenticationError,
    CatalogImageError,
    ExtractionCancelled,
    ValidationError,
)
from .utils.file_utils import (
    ensure_directory_exists,
    save_images_to_directory,
    validate_file_extension,
    validate_file_size,
    write_image,
)
from .utils.image_utils import detect_image_format, encode_image_as_base64
from .utils.validation import parse_bool, validate_api_request

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

config_manager = ConfigManager()
app_config = config_manager.get_app_config()

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = app_config["max_file_size_mb"] * 1024 * 1024


def setup_logging() -> None:
    """Setup logging configuration."""
    log_level = app_config.get("log_level", "INFO").upper()
    verbose_logging = os.environ.get("VERBOSE_LOGGING", "true").lower() == "true"

    if not verbose_logging and log_level in ["DEBUG", "INFO"]:
        log_level = "WARNING"

    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    for handler in logging.getLogger().handlers:
        handler.setFormatter(formatter)

    if not verbose_logging:
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
        logging.getLogger("PIL").setLevel(logging.WARNING)


def authenticate_request() -> bool:
    """Authenticate API request."""
    if app_config.get("development_mode", False):
        logger.debug("Authentication bypassed in development mode")
        return True

    api_key = app_config.get("api_key")
    if not api_key:
        return True  # No authentication required if no key configured

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        return token == api_key

    request_key = request.args.get("api_key") or request.form.get("api_key")
    return request_key == api_key


def create_error_response(
    error: Exception, status_code: int = 500
) -> Tuple[Dict[str, Any], int]:
    """Create standardized error response."""
    error_response = {
        "success": False,
        "error": {
            "type": type(error).__name__,
            "message": str(error),
            "code": status_code,
        },
    }

    if getattr(error, "error_code", None):
        error_response["error"]["error_code"] = error.error_code

    if app_config.get("development_mode", False):
        error_response["error"]["traceback"] = traceback.format_exc()

    logger.error(f"API Error ({status_code}): {error}")
    return error_response, status_code


def serialize_image(image: ClassifiedImage, include_images: bool) -> Dict[str, Any]:
    """JSON-ready view of an image, optionally with a base64 preview."""
    data = image.to_dict()
    if include_images and image.payload is not None:
        img_format = detect_image_format(image.payload)
        data["format"] = img_format
        data["image_base64"] = encode_image_as_base64(image.payload, img_format)
    return data


def serialize_result(result: ExtractionResult, include_images: bool) -> Dict[str, Any]:
    return {
        "success": True,
        "summary": result.summary(),
        "primary_images": [
            serialize_image(image, include_images) for image in result.primary_images
        ],
        "supplier_images": [
            serialize_image(image, include_images) for image in result.supplier_images
        ],
        "total": result.total,
        "diagnostics": [diagnostic.to_dict() for diagnostic in result.diagnostics],
    }


@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(error):
    """Handle file size too large error."""
    content_length = request.headers.get("Content-Length", "Unknown")
    logger.error(
        f"413 Error - Request too large: {request.path}, "
        f"Content-Length: {content_length}"
    )
    return create_error_response(
        ValidationError(
            f"Request size exceeds maximum allowed size of "
            f"{app_config['max_file_size_mb']}MB"
        ),
        413,
    )


@app.before_request
def before_request():
    """Pre-request authentication."""
    if request.endpoint == "health":
        return

    if not authenticate_request():
        error_response, status_code = create_error_response(
            AuthenticationError("Invalid API key"), 401
        )
        return jsonify(error_response), status_code


@app.route("/api/v1/health", methods=["GET"])
def health() -> Tuple[Dict[str, Any], int]:
    """Health check endpoint."""
    return {
        "success": True,
        "status": "healthy",
        "version": "0.1.0",
        "environment": os.getenv("ENVIRONMENT", "development"),
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }, 200


@app.route("/api/v1/extract", methods=["POST"])
def extract_images_endpoint() -> Tuple[Dict[str, Any], int]:
    """Extract row-bound primary and supplier images from an uploaded workbook."""
    start_time = datetime.datetime.now()
    try:
        validate_api_request(request.files, request.form)
        excel_file = request.files["file"]

        if not validate_file_extension(
            excel_file.filename, app_config["allowed_extensions"]
        ):
            raise ValidationError(
                f"File extension not allowed. Allowed: "
                f"{', '.join(app_config['allowed_extensions'])}"
            )
        if not validate_file_size(excel_file, app_config["max_file_size_mb"]):
            raise ValidationError(
                f"File size exceeds maximum allowed size of "
                f"{app_config['max_file_size_mb']}MB"
            )

        settings = config_manager.get_extraction_settings()
        if request.form.get("max_workers"):
            settings["max_workers"] = int(request.form["max_workers"])
        settings["strict"] = parse_bool(request.form.get("strict"), settings["strict"])
        include_images = parse_bool(request.form.get("include_images"), True)

        logger.info(f"Extracting images from uploaded file: {excel_file.filename}")
        result = ImageExtractor(excel_file.stream, settings).extract()

        response = serialize_result(result, include_images)
        response["processing_time_seconds"] = (
            datetime.datetime.now() - start_time
        ).total_seconds()
        return response, 200

    except ValidationError as e:
        return create_error_response(e, 400)
    except CatalogImageError as e:
        return create_error_response(e, 422)
    except Exception as e:
        logger.exception("Unexpected error during extraction")
        return create_error_response(e, 500)


def catalog_image_extractor(request_obj):
    """Cloud Function handler, routing to the Flask app."""
    with app.request_context(request_obj.environ):
        try:
            response = app.full_dispatch_request()
        except Exception as e:
            error_response, status_code = create_error_response(e, 500)
            response = app.response_class(
                json.dumps(error_response), status=status_code, mimetype="application/json"
            )
        return response


# CLI interface
@click.group()
def cli():
    """Catalog Image Extractor CLI."""
    setup_logging()


@cli.command("extract")
@click.argument("excel_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output-dir",
    "-o",
    default=None,
    help="Directory to write extracted images to (default: output.directory)",
)
@click.option(
    "--manifest",
    "-m",
    default=None,
    help="CSV manifest path (default: output.manifest_name in the output directory)",
)
@click.option("--no-manifest", is_flag=True, help="Do not write a manifest")
@click.option("--config-name", "-c", default="default_config", help="Configuration name")
@click.option("--workers", "-w", type=int, default=None, help="Parallel media readers")
@click.option("--strict/--no-strict", default=None, help="Fail on the first dropped anchor")
@click.option(
    "--stream/--no-stream",
    default=False,
    help="Write each image as it is read instead of holding all in memory",
)
def extract_cli(
    excel_file: str,
    output_dir: str = None,
    manifest: str = None,
    no_manifest: bool = False,
    config_name: str = "default_config",
    workers: int = None,
    strict: bool = None,
    stream: bool = False,
) -> None:
    """Extract row-bound images from EXCEL_FILE into OUTPUT_DIR."""
    try:
        config = config_manager.load_config(config_name)
        settings = dict(config["extraction"])
        output_config = config.get("output", {})
        output_dir = output_dir or output_config.get("directory") or "extracted_images"
        if no_manifest:
            manifest = None
        elif manifest is None and output_config.get("write_manifest", False):
            manifest = os.path.join(
                output_dir, output_config.get("manifest_name", "manifest.csv")
            )

        if workers is not None:
            settings["max_workers"] = max(1, workers)
        if strict is not None:
            settings["strict"] = strict

        with open(excel_file, "rb") as f:
            data = f.read()

        ensure_directory_exists(output_dir)

        if stream:
            settings["retain_payloads"] = False
            result = ImageExtractor(data, settings).extract(
                on_image=lambda image: write_image(image, output_dir)
            )
        else:
            result = ImageExtractor(data, settings).extract()
            save_images_to_directory(
                result.primary_images + result.supplier_images, output_dir
            )

        if manifest:
            result.to_dataframe().to_csv(manifest, index=False)
            click.echo(f"Manifest written to: {manifest}")

        summary = result.summary()
        click.echo(
            f"Extracted {summary['primary_count']} primary and "
            f"{summary['supplier_count']} supplier images for "
            f"{summary['row_count']} rows into {output_dir}"
        )
        if result.diagnostics:
            click.echo(f"{len(result.diagnostics)} anchors dropped:")
            for diagnostic in result.diagnostics:
                click.echo(f"  [{diagnostic.kind}] {diagnostic.message}")

    except ExtractionCancelled:
        click.echo("Extraction cancelled", err=True)
        raise SystemExit(1)
    except (CatalogImageError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--debug", is_flag=True, help="Enable debug mode")
def serve(host: str, port: int, debug: bool) -> None:
    """Start the Flask development server."""
    flask_config = app_config["flask_config"]
    host = host or flask_config["host"]
    port = port or flask_config["port"]

    logger.info(f"Starting Catalog Image Extractor server on {host}:{port}")
    app.run(
        host=host,
        port=port,
        debug=debug or flask_config["debug"] or app_config["development_mode"],
    )


if __name__ == "__main__":
    cli()
