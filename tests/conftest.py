"""Shared fixtures: in-memory xlsx packages carrying anchored pictures."""

import io
import zipfile
from typing import Dict, Optional, Sequence, Tuple

import pytest
from openpyxl import Workbook
from PIL import Image as PILImage

XDR_NS = "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
IMAGE_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"
)
CHART_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/chart"
)
DRAWING_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/drawing"
)
SHEET_RELS_PART = "xl/worksheets/_rels/sheet1.xml.rels"


def make_image_bytes(fmt: str = "PNG", color: str = "red") -> bytes:
    """Small real image so format detection has something to read."""
    buffer = io.BytesIO()
    PILImage.new("RGB", (4, 4), color).save(buffer, format=fmt)
    return buffer.getvalue()


def picture_anchor_xml(row: int, col: int, reference_id: str, anchor_id: int) -> str:
    return f"""
  <xdr:twoCellAnchor editAs="oneCell">
    <xdr:from><xdr:col>{col}</xdr:col><xdr:colOff>0</xdr:colOff><xdr:row>{row}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:from>
    <xdr:to><xdr:col>{col + 1}</xdr:col><xdr:colOff>0</xdr:colOff><xdr:row>{row + 1}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:to>
    <xdr:pic>
      <xdr:nvPicPr><xdr:cNvPr id="{anchor_id}" name="Picture {anchor_id}"/><xdr:cNvPicPr/></xdr:nvPicPr>
      <xdr:blipFill><a:blip r:embed="{reference_id}"/><a:stretch><a:fillRect/></a:stretch></xdr:blipFill>
      <xdr:spPr><a:prstGeom prst="rect"><a:avLst/></a:prstGeom></xdr:spPr>
    </xdr:pic>
    <xdr:clientData/>
  </xdr:twoCellAnchor>"""


def shape_anchor_xml(row: int, col: int, anchor_id: int) -> str:
    return f"""
  <xdr:twoCellAnchor>
    <xdr:from><xdr:col>{col}</xdr:col><xdr:colOff>0</xdr:colOff><xdr:row>{row}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:from>
    <xdr:to><xdr:col>{col + 1}</xdr:col><xdr:colOff>0</xdr:colOff><xdr:row>{row + 1}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:to>
    <xdr:sp>
      <xdr:nvSpPr><xdr:cNvPr id="{anchor_id}" name="Shape {anchor_id}"/><xdr:cNvSpPr/></xdr:nvSpPr>
      <xdr:spPr><a:prstGeom prst="rect"><a:avLst/></a:prstGeom></xdr:spPr>
    </xdr:sp>
    <xdr:clientData/>
  </xdr:twoCellAnchor>"""


def drawing_xml(anchors: Sequence[Tuple[int, int, str]], shapes: Sequence[Tuple[int, int]] = ()) -> str:
    body = "".join(
        picture_anchor_xml(row, col, reference_id, index + 2)
        for index, (row, col, reference_id) in enumerate(anchors)
    )
    body += "".join(
        shape_anchor_xml(row, col, 100 + index)
        for index, (row, col) in enumerate(shapes)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<xdr:wsDr xmlns:xdr="{XDR_NS}" xmlns:a="{A_NS}" xmlns:r="{R_NS}">'
        f"{body}\n</xdr:wsDr>"
    )


def rels_xml(relationships: Dict[str, str], chart_ids: Sequence[str] = ()) -> str:
    entries = "".join(
        f'<Relationship Id="{rid}" Type="{IMAGE_REL_TYPE}" Target="{target}"/>'
        for rid, target in relationships.items()
    )
    entries += "".join(
        f'<Relationship Id="{rid}" Type="{CHART_REL_TYPE}" Target="../charts/chart1.xml"/>'
        for rid in chart_ids
    )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<Relationships xmlns="{PKG_REL_NS}">{entries}</Relationships>'
    )


def sheet_rels_xml(drawing_target: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<Relationships xmlns="{PKG_REL_NS}">'
        f'<Relationship Id="rId1" Type="{DRAWING_REL_TYPE}" Target="{drawing_target}"/>'
        "</Relationships>"
    )


def build_package(
    row_keys: Sequence[Optional[str]],
    anchors: Sequence[Tuple[int, int, str]] = (),
    relationships: Optional[Dict[str, str]] = None,
    media: Optional[Dict[str, bytes]] = None,
    include_drawing: bool = True,
    link_drawing: bool = True,
    chart_ids: Sequence[str] = (),
    shapes: Sequence[Tuple[int, int]] = (),
    extra_parts: Optional[Dict[str, bytes]] = None,
) -> bytes:
    """Build an xlsx package.

    Args:
        row_keys: Column A values below the header row
        anchors: (raw 0-based row, raw 0-based col, reference id) per picture
        relationships: Reference id to relationship target
        media: File name under xl/media to bytes
        include_drawing: When False, no drawing or drawing rels part is written
        link_drawing: When False, the first worksheet does not reference the drawing
        chart_ids: Reference ids registered as chart relationships
        shapes: (row, col) of non-picture shape anchors
        extra_parts: Additional raw parts to add to the package
    """
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Produtos"
    worksheet.cell(row=1, column=1, value="SKU")
    worksheet.cell(row=1, column=2, value="IMAGEM")
    worksheet.cell(row=1, column=3, value="IMAGEM FORNECEDOR")
    for offset, key in enumerate(row_keys):
        worksheet.cell(row=offset + 2, column=1, value=key)
        worksheet.cell(row=offset + 2, column=4, value=f"Description {offset}")

    base = io.BytesIO()
    workbook.save(base)
    workbook.close()

    output = io.BytesIO()
    with zipfile.ZipFile(base) as source, zipfile.ZipFile(
        output, "w", zipfile.ZIP_DEFLATED
    ) as target:
        for info in source.infolist():
            target.writestr(info, source.read(info.filename))

        if include_drawing:
            target.writestr("xl/drawings/drawing1.xml", drawing_xml(anchors, shapes))
            target.writestr(
                "xl/drawings/_rels/drawing1.xml.rels",
                rels_xml(relationships or {}, chart_ids),
            )
            if link_drawing:
                target.writestr(SHEET_RELS_PART, sheet_rels_xml("../drawings/drawing1.xml"))
        for name, payload in (media or {}).items():
            target.writestr(f"xl/media/{name}", payload)
        for name, payload in (extra_parts or {}).items():
            target.writestr(name, payload)

    return output.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG", "red")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", "blue")


@pytest.fixture
def two_image_row_package(png_bytes, jpeg_bytes) -> bytes:
    """One data row with a primary (column B) and supplier (column C) picture."""
    return build_package(
        row_keys=["CMD-34"],
        anchors=[(1, 1, "rId1"), (1, 2, "rId2")],
        relationships={"rId1": "../media/img1.png", "rId2": "../media/img2.jpg"},
        media={"img1.png": png_bytes, "img2.jpg": jpeg_bytes},
    )


@pytest.fixture
def catalog_package(png_bytes, jpeg_bytes) -> bytes:
    """Three data rows: two images, one image, none."""
    return build_package(
        row_keys=["SKU-1", "SKU-2", "SKU-3"],
        anchors=[
            (1, 1, "rId1"),
            (1, 2, "rId2"),
            (2, 1, "rId3"),
        ],
        relationships={
            "rId1": "../media/image1.png",
            "rId2": "../media/image2.jpeg",
            "rId3": "../media/image3.png",
        },
        media={
            "image1.png": png_bytes,
            "image2.jpeg": jpeg_bytes,
            "image3.png": png_bytes,
        },
    )


@pytest.fixture
def package_factory():
    """Builder for custom packages, see build_package."""
    return build_package
