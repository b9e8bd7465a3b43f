"""
Image embedding for the DOCX exporter.

Each MediaAsset becomes exactly one media part in the package, however
many times it is referenced. Raster images go through python-docx's image
part machinery; SVG files are added as ``image/svg+xml`` parts directly,
since python-docx does not recognise them.

Sizing: intrinsic pixels at the configured DPI (96 by default), clamped to
the maximum printable width with the aspect ratio kept. When dimensions
cannot be read the picture is placed at 6in x 4in.
"""

import logging
import re
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple

from docx.image.exceptions import UnrecognizedImageError
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.part import Part
from docx.oxml.shape import CT_Inline
from lxml import etree
from PIL import Image as PILImage, UnidentifiedImageError

from config.constants import (
    EMUS_PER_INCH,
    FALLBACK_IMAGE_WIDTH_INCHES,
    FALLBACK_IMAGE_HEIGHT_INCHES,
)
from ..source.models import MediaAsset, MediaKind

logger = logging.getLogger(__name__)

SVG_CONTENT_TYPE = 'image/svg+xml'

# CSS units in px
_SVG_UNITS = {
    '': 1.0,
    'px': 1.0,
    'pt': 96.0 / 72.0,
    'pc': 16.0,
    'in': 96.0,
    'cm': 96.0 / 2.54,
    'mm': 96.0 / 25.4,
}
_LENGTH_RE = re.compile(r'^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([a-zA-Z%]*)\s*$')


class ImageEmbedError(Exception):
    """An image could not be added to the package."""


def svg_length(value: Optional[str]) -> Optional[float]:
    """Parse an SVG width/height attribute to px; None for % or unknown units."""
    if not value:
        return None
    match = _LENGTH_RE.match(value)
    if not match:
        return None
    unit = match.group(2).lower()
    if unit not in _SVG_UNITS:
        return None
    return float(match.group(1)) * _SVG_UNITS[unit]


def svg_size(data: bytes) -> Optional[Tuple[float, float]]:
    """Width/height of an SVG document in px, from attributes or the viewBox."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError:
        return None

    width = svg_length(root.get('width'))
    height = svg_length(root.get('height'))
    view_box = root.get('viewBox')
    box = None
    if view_box:
        try:
            parts = [float(v) for v in re.split(r'[\s,]+', view_box.strip())]
            if len(parts) == 4 and parts[2] > 0 and parts[3] > 0:
                box = (parts[2], parts[3])
        except ValueError:
            box = None

    if width and height:
        return width, height
    if box:
        if width:
            return width, width * box[1] / box[0]
        if height:
            return height * box[0] / box[1], height
        return box
    return None


def raster_size(data: bytes) -> Optional[Tuple[float, float]]:
    """Pixel dimensions of a raster image via Pillow."""
    try:
        with PILImage.open(BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    return float(width), float(height)


def image_pixel_size(asset: MediaAsset) -> Optional[Tuple[float, float]]:
    if asset.kind is MediaKind.VECTOR:
        size = svg_size(asset.data)
    else:
        size = raster_size(asset.data)
    if size is None or size[0] <= 0 or size[1] <= 0:
        return None
    return size


def fit_extent(
    width_px: float,
    height_px: float,
    dpi: int,
    max_width_emu: int,
) -> Tuple[int, int]:
    """Convert px to EMU at dpi and clamp to max_width_emu, keeping aspect."""
    cx = int(round(width_px / dpi * EMUS_PER_INCH))
    cy = int(round(height_px / dpi * EMUS_PER_INCH))
    if cx > max_width_emu:
        cy = int(round(cy * max_width_emu / cx))
        cx = max_width_emu
    return max(cx, 1), max(cy, 1)


class DocxMediaEmbedder:
    """
    Adds pictures to a python-docx Document.

    Usage:
        embedder = DocxMediaEmbedder(doc, dpi=96, max_width_emu=Inches(6.5))
        embedder.add_picture(paragraph.add_run(), asset, alt="Architecture")
    """

    def __init__(self, document, dpi: int, max_width_emu: int):
        self.document = document
        self.part = document.part
        self.dpi = dpi
        self.max_width_emu = max_width_emu
        self._relationships: Dict[Path, Tuple[str, str]] = {}
        self.unsized: Dict[Path, str] = {}

    @property
    def embedded_count(self) -> int:
        return len(self._relationships)

    def add_picture(self, run, asset: MediaAsset, alt: str = "") -> None:
        """
        Append an inline picture to run.

        Raises:
            ImageEmbedError: the payload cannot be read or is not an image
                python-docx understands.
        """
        r_id, filename = self._relate(asset)
        cx, cy = self.extent(asset)
        inline = CT_Inline.new_pic_inline(self.part.next_id, r_id, filename, cx, cy)
        inline.docPr.set('descr', alt or '')
        run._r.add_drawing(inline)

    def extent(self, asset: MediaAsset) -> Tuple[int, int]:
        size = image_pixel_size(asset)
        if size is None:
            self.unsized[asset.absolute_path] = asset.path
            logger.warning(f"Cannot read dimensions of {asset.path}; using default size")
            return fit_extent(
                FALLBACK_IMAGE_WIDTH_INCHES * self.dpi,
                FALLBACK_IMAGE_HEIGHT_INCHES * self.dpi,
                self.dpi,
                self.max_width_emu,
            )
        return fit_extent(size[0], size[1], self.dpi, self.max_width_emu)

    def _relate(self, asset: MediaAsset) -> Tuple[str, str]:
        cached = self._relationships.get(asset.absolute_path)
        if cached is not None:
            return cached

        try:
            data = asset.data
        except OSError as e:
            raise ImageEmbedError(f"cannot read {asset.path}: {e}") from e

        if asset.kind is MediaKind.VECTOR:
            package = self.part.package
            partname = package.next_partname('/word/media/image%d.svg')
            svg_part = Part(partname, SVG_CONTENT_TYPE, data, package)
            r_id = self.part.relate_to(svg_part, RT.IMAGE)
            filename = asset.filename
        else:
            try:
                r_id, image = self.part.get_or_add_image(BytesIO(data))
            except UnrecognizedImageError as e:
                raise ImageEmbedError(f"unsupported image format: {asset.path}") from e
            filename = image.filename

        self._relationships[asset.absolute_path] = (r_id, filename)
        logger.debug(f"Embedded {asset.path} as {r_id}")
        return r_id, filename
