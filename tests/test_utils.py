"""Tests for file, image and validation helpers."""

import base64
import io
import os

import pytest
from werkzeug.datastructures import FileStorage

from catalog_images.models import ClassifiedImage, ImageRole
from catalog_images.utils.exceptions import FileProcessingError, ValidationError
from catalog_images.utils.file_utils import (
    save_images_to_directory,
    validate_file_extension,
    validate_file_size,
    write_image,
)
from catalog_images.utils.image_utils import (
    detect_image_format,
    encode_image_as_base64,
)
from catalog_images.utils.validation import (
    parse_bool,
    sanitize_filename,
    validate_api_request,
    validate_extraction_config,
)


def _image(name, payload=b"bytes", role=ImageRole.PRIMARY):
    return ClassifiedImage(
        row_key=name.split(".")[0],
        role=role,
        original_media_name="image1.png",
        derived_output_name=name,
        payload=payload,
        row_position=0,
        sheet_row=2,
        sheet_column=2,
    )


class TestFileUtils:
    """Test cases for file helpers."""

    def test_validate_file_extension(self):
        assert validate_file_extension("catalog.XLSX", ["xlsx", "xlsm"])
        assert validate_file_extension("catalog.xlsm", [".xlsm"])
        assert not validate_file_extension("catalog.xls", ["xlsx"])
        assert not validate_file_extension("", ["xlsx"])

    def test_validate_file_size(self):
        storage = FileStorage(stream=io.BytesIO(b"x" * 2048), filename="a.xlsx")
        assert validate_file_size(storage, 1)
        assert storage.stream.tell() == 0

        big = io.BytesIO(b"x" * (1024 * 1024 + 1))
        assert not validate_file_size(big, 1)

    def test_save_images_to_directory(self, tmp_path):
        images = [
            _image("SKU-1.png", b"one"),
            _image("SKU-1_supplier.jpg", b"two", ImageRole.SUPPLIER),
        ]
        paths = save_images_to_directory(images, str(tmp_path / "out"))

        assert [os.path.basename(p) for p in paths] == [
            "SKU-1.png",
            "SKU-1_supplier.jpg",
        ]
        with open(paths[1], "rb") as f:
            assert f.read() == b"two"

    def test_duplicate_names_are_not_overwritten(self, tmp_path):
        """Test rows sharing a key keep every file."""
        paths = save_images_to_directory(
            [_image("DUP.png", b"a"), _image("DUP.png", b"b"), _image("DUP.png", b"c")],
            str(tmp_path),
        )
        assert [os.path.basename(p) for p in paths] == [
            "DUP.png",
            "DUP_2.png",
            "DUP_3.png",
        ]

    def test_unsafe_names_are_sanitized(self, tmp_path):
        path = write_image(_image("A/B:1.png"), str(tmp_path))
        assert os.path.basename(path) == "A_B_1.png"

    def test_write_image_without_payload(self, tmp_path):
        with pytest.raises(FileProcessingError):
            write_image(_image("SKU.png", payload=None), str(tmp_path))


class TestImageUtils:
    """Test cases for image helpers."""

    def test_detect_image_format(self, png_bytes, jpeg_bytes):
        assert detect_image_format(png_bytes) == "png"
        assert detect_image_format(jpeg_bytes) == "jpeg"

    def test_detect_image_format_fallback(self):
        assert detect_image_format(b"not an image") == "png"
        assert detect_image_format(b"not an image", fallback="bin") == "bin"

    def test_encode_image_as_base64(self, png_bytes):
        uri = encode_image_as_base64(png_bytes, "png")
        prefix = "data:image/png;base64,"
        assert uri.startswith(prefix)
        assert base64.b64decode(uri[len(prefix):]) == png_bytes

    def test_encode_jpg_alias(self):
        assert encode_image_as_base64(b"x", "JPG").startswith("data:image/jpeg;")


class TestValidation:
    """Test cases for validation helpers."""

    def test_validate_extraction_config(self):
        validate_extraction_config({"extraction": {"strict": True, "max_workers": 2}})

    @pytest.mark.parametrize(
        "config",
        [
            {},
            {"extraction": {"max_workers": 0}},
            {"extraction": {"unknown": 1}},
            {"extraction": {"media_directory": ""}},
        ],
    )
    def test_validate_extraction_config_invalid(self, config):
        with pytest.raises(ValidationError):
            validate_extraction_config(config)

    def test_validate_api_request(self):
        storage = FileStorage(stream=io.BytesIO(b""), filename="a.xlsx")
        validate_api_request({"file": storage}, {"max_workers": "3"})

        with pytest.raises(ValidationError):
            validate_api_request({}, {})
        with pytest.raises(ValidationError):
            validate_api_request({"file": storage}, {"max_workers": "-1"})

    def test_parse_bool(self):
        assert parse_bool("true") is True
        assert parse_bool("0", True) is False
        assert parse_bool(None, True) is True
        assert parse_bool("", False) is False

    def test_sanitize_filename(self):
        assert sanitize_filename("") == "unnamed_file"
        assert sanitize_filename("a|b?.png") == "a_b_.png"

