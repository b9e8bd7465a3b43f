#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Template-Based DOCX Exporter

Reuses a user-supplied template package for all visual identity:
1. Load template bytes once (the template file is never modified)
2. Open an in-memory copy and clear its body, keeping section properties
3. Emit headings, paragraphs, lists, tables and pictures using the
   template's styles and numbering. Each heading carries a bookmark
   and links to sections become w:hyperlink w:anchor jumps
4. Fill core properties, serialize reproducibly, then write atomically

Without a configured template python-docx's default template is used.
A configured template that is missing or unreadable is a TemplateError,
raised before anything is written.
"""

import logging
import zipfile
from dataclasses import dataclass, replace
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Inches, Pt, RGBColor, Twips
from lxml import etree

from config.constants import (
    BLOCKQUOTE_INDENT_TWIPS,
    CODE_FONT,
    CODE_FONT_SIZE_PT,
    LIST_INDENT_TWIPS,
)
from config.settings import settings
from ..errors import TemplateError
from ..rendering.document_model import (
    Alignment,
    Block,
    BlockType,
    DocumentSection,
    Inline,
    InlineImage,
    LineBreak,
    TextRun,
    UnifiedDocument,
)
from .base import BaseExporter, atomic_write_bytes
from .docx_media import DocxMediaEmbedder, ImageEmbedError
from .docx_numbering import DocxNumbering
from .docx_package import apply_core_properties, document_timestamp, package_bytes
from .section_targets import SectionTargets, target_name

logger = logging.getLogger(__name__)

# Children of w:pPr that must follow w:pBdr
_PBDR_SUCCESSORS = (
    'w:shd', 'w:tabs', 'w:suppressAutoHyphens', 'w:kinsoku', 'w:wordWrap',
    'w:overflowPunct', 'w:topLinePunct', 'w:autoSpaceDE', 'w:autoSpaceDN',
    'w:bidi', 'w:adjustRightInd', 'w:snapToGrid', 'w:spacing', 'w:ind',
    'w:contextualSpacing', 'w:mirrorIndents', 'w:suppressOverlap', 'w:jc',
    'w:textDirection', 'w:textAlignment', 'w:textboxTightWrap',
    'w:outlineLvl', 'w:divId', 'w:cnfStyle', 'w:rPr', 'w:sectPr', 'w:pPrChange',
)
# Children of w:tblPr that must follow w:tblBorders
_TBLBORDERS_SUCCESSORS = (
    'w:shd', 'w:tblLayout', 'w:tblCellMar', 'w:tblLook',
    'w:tblCaption', 'w:tblDescription', 'w:tblPrChange',
)

_ALIGNMENT_MAP = {
    Alignment.LEFT: WD_ALIGN_PARAGRAPH.LEFT,
    Alignment.CENTER: WD_ALIGN_PARAGRAPH.CENTER,
    Alignment.RIGHT: WD_ALIGN_PARAGRAPH.RIGHT,
}


class TemplateCache:
    """
    Cache for template bytes.

    Templates are read once per (path, size, mtime); each export gets a
    fresh Document built from the cached bytes.
    """
    _bytes_cache: Dict[Tuple[Path, int, int], bytes] = {}

    @classmethod
    def get_template_bytes(cls, path: Union[str, Path]) -> bytes:
        """
        Read and check a template package.

        Raises:
            TemplateError: missing, unreadable or not a Word package.
        """
        path = Path(path).resolve()
        try:
            stat = path.stat()
        except OSError as e:
            raise TemplateError(f"DOCX template not found: {path}") from e

        key = (path, stat.st_size, stat.st_mtime_ns)
        if key not in cls._bytes_cache:
            try:
                data = path.read_bytes()
            except OSError as e:
                raise TemplateError(f"Cannot read DOCX template {path}: {e}") from e
            open_template(data, path)
            cls._bytes_cache[key] = data
        return cls._bytes_cache[key]

    @classmethod
    def clear(cls):
        """Clear cache"""
        cls._bytes_cache.clear()


def open_template(data: bytes, path: Union[str, Path] = "<template>"):
    """Open template bytes as a python-docx Document or raise TemplateError."""
    try:
        return Document(BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, etree.XMLSyntaxError) as e:
        raise TemplateError(f"DOCX template {path} is not a valid Word package: {e}") from e


@dataclass(frozen=True)
class _Context:
    """Where a block sits: quote depth and list nesting."""
    quote_level: int = 0
    list_level: int = -1
    num_id: Optional[int] = None     # set for the first paragraph of a list item


class DocxTemplateExporter(BaseExporter):
    """
    Exports a UnifiedDocument to DOCX using a template's styles.

    Usage:
        exporter = DocxTemplateExporter(template_path="templates/company.docx")
        exporter.export(document, "build/SDD-001.docx")
        for warning in exporter.warnings:
            print(warning)
    """

    def __init__(
        self,
        template_path: Optional[Union[str, Path]] = None,
        image_dpi: Optional[int] = None,
        max_image_width_inches: Optional[float] = None,
    ):
        super().__init__()
        self.template_path = Path(template_path) if template_path else None
        self.image_dpi = image_dpi or settings.image_dpi
        self.max_image_width_inches = max_image_width_inches or settings.max_image_width_inches
        # Fail on a bad template before any output exists
        self._template_bytes = (
            TemplateCache.get_template_bytes(self.template_path) if self.template_path else None
        )
        if self._template_bytes is None:
            logger.warning("No DOCX template configured, using python-docx default styles")

        self.doc = None
        self.media: Optional[DocxMediaEmbedder] = None
        self.numbering: Optional[DocxNumbering] = None
        self._missing_styles: set = set()
        self.targets: Optional[SectionTargets] = None
        self._source_path: Optional[str] = None
        self._bookmark_id = 0

    @classmethod
    def supports_format(cls, format_name: str) -> bool:
        return format_name.lower() == "docx"

    @classmethod
    def get_supported_formats(cls) -> List[str]:
        return ["docx"]

    def export(self, document: UnifiedDocument, output_path: Union[str, Path]) -> Path:
        """
        Build the package and write it to output_path.

        Returns:
            Path to the written file.
        """
        output_path = Path(output_path)
        self.warnings = []
        self._missing_styles = set()

        self.doc = self._new_document()
        max_width = min(Inches(self.max_image_width_inches), self._printable_width())
        self.media = DocxMediaEmbedder(self.doc, self.image_dpi, max_width)
        self.numbering = None
        self.targets = SectionTargets(document)
        self._bookmark_id = 0

        for section in document.walk():
            self._add_section(section)

        for path in self.media.unsized.values():
            self.warn(f"Cannot read dimensions of {path}; placed at default size")

        apply_core_properties(self.doc, document, document_timestamp(document))
        data = package_bytes(self.doc)
        atomic_write_bytes(output_path, data)

        logger.info(
            f"DOCX saved: {output_path} ({len(data)} bytes, "
            f"{self.media.embedded_count} media part(s), {len(self.warnings)} warning(s))"
        )
        return output_path

    # ------------------------------------------------------------------
    # Document setup
    # ------------------------------------------------------------------

    def _new_document(self):
        if self._template_bytes is None:
            return Document()
        doc = open_template(self._template_bytes, self.template_path)
        self._clear_body(doc)
        return doc

    @staticmethod
    def _clear_body(doc) -> None:
        """Remove template body content, keeping the final section properties."""
        body = doc.element.body
        for child in list(body):
            if child.tag != qn('w:sectPr'):
                body.remove(child)

    def _printable_width(self) -> int:
        section = self.doc.sections[-1]
        if section.page_width is None:
            return Inches(self.max_image_width_inches)
        margins = (section.left_margin or 0) + (section.right_margin or 0)
        return max(int(section.page_width - margins), Inches(1))

    def _has_style(self, style_id: str) -> bool:
        return self.doc.styles.element.get_by_id(style_id) is not None

    def _set_style(self, paragraph, style_id: str) -> bool:
        """Apply a paragraph style by id; record a warning once if absent."""
        if self._has_style(style_id):
            paragraph._p.get_or_add_pPr().style = style_id
            return True
        if style_id not in self._missing_styles:
            self._missing_styles.add(style_id)
            self.warn(f"Template has no '{style_id}' style; using direct formatting")
        return False

    def _numbering(self) -> DocxNumbering:
        if self.numbering is None:
            self.numbering = DocxNumbering(self.doc)
        return self.numbering

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _add_section(self, section: DocumentSection) -> None:
        self._source_path = section.source_path
        paragraph = self.doc.add_paragraph()
        style_id = f"Heading{section.heading_level}"
        if section.heading_runs:
            runs = [paragraph.add_run(f"{section.number} ")]
            runs.extend(self._add_runs(paragraph, section.heading_runs))
        else:
            runs = [paragraph.add_run(section.heading_text)]
        if not self._set_style(paragraph, style_id):
            for run in runs:
                run.bold = True
                run.font.size = Pt(max(18 - 2 * section.heading_level, 10))
        self._add_bookmark(paragraph, target_name(section))

        for block in section.blocks:
            self._add_block(block, _Context())

    def _add_bookmark(self, paragraph, name: str) -> None:
        """Enclose the paragraph's content in a w:bookmarkStart/w:bookmarkEnd pair."""
        start = OxmlElement('w:bookmarkStart')
        start.set(qn('w:id'), str(self._bookmark_id))
        start.set(qn('w:name'), name)
        end = OxmlElement('w:bookmarkEnd')
        end.set(qn('w:id'), str(self._bookmark_id))
        self._bookmark_id += 1

        p = paragraph._p
        if p.pPr is not None:
            p.pPr.addnext(start)
        else:
            p.insert(0, start)
        p.append(end)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _add_block(self, block: Block, ctx: _Context) -> None:
        kind = block.block_type
        if kind == BlockType.PARAGRAPH:
            paragraph = self._new_paragraph(ctx)
            self._add_runs(paragraph, block.runs)
        elif kind == BlockType.HEADING:
            paragraph = self._new_paragraph(ctx)
            for run in self._add_runs(paragraph, block.runs):
                run.bold = True
        elif kind == BlockType.BLOCKQUOTE:
            inner = replace(ctx, quote_level=ctx.quote_level + 1, num_id=None)
            for child in block.blocks:
                self._add_block(child, inner)
        elif kind == BlockType.CODE_BLOCK:
            self._add_code_block(block, ctx)
        elif kind == BlockType.LIST:
            self._add_list(block, ctx)
        elif kind == BlockType.TABLE:
            self._add_table(
                [[list(cell) for cell in block.header]] + [[list(c) for c in row] for row in block.rows],
                block.alignments,
            )
        elif kind == BlockType.CSV_TABLE:
            if not block.header:
                self.warn(f"Table {block.path} is empty or unreadable; skipped")
                return
            self._add_table(
                [[[TextRun(cell)] for cell in block.header]]
                + [[[TextRun(cell)] for cell in row] for row in block.rows],
                [],
            )
        elif kind == BlockType.IMAGE:
            self._add_image(block, ctx)
        elif kind == BlockType.RULE:
            self._add_horizontal_rule(ctx)
        elif kind == BlockType.RAW_HTML:
            self._add_raw_html(block, ctx)
        else:
            self.warn(f"Unsupported block {kind.value}; rendered as text")
            self._new_paragraph(ctx).add_run(str(block))

    def _new_paragraph(self, ctx: _Context):
        """Add a body paragraph carrying the list/quote context."""
        paragraph = self.doc.add_paragraph()
        indent = 0
        if ctx.num_id is not None:
            self._set_style(paragraph, "ListParagraph")
            DocxNumbering.apply(paragraph, ctx.num_id, ctx.list_level)
        elif ctx.list_level >= 0:
            indent += LIST_INDENT_TWIPS * (ctx.list_level + 1)
        if ctx.quote_level:
            indent += BLOCKQUOTE_INDENT_TWIPS * ctx.quote_level
            self._add_left_border(paragraph)
        if indent:
            paragraph.paragraph_format.left_indent = Twips(indent)
        return paragraph

    def _add_list(self, block, ctx: _Context) -> None:
        level = ctx.list_level + 1
        num_id = self._numbering().new_list(block.ordered, block.start, level)
        numbered = replace(ctx, list_level=level, num_id=num_id)
        continuation = replace(ctx, list_level=level, num_id=None)
        for item in block.items:
            # only the first paragraph of an item carries the number
            if not item or item[0].block_type != BlockType.PARAGRAPH:
                self._new_paragraph(numbered)
                children = item
            else:
                self._add_block(item[0], numbered)
                children = item[1:]
            for child in children:
                self._add_block(child, continuation)

    def _add_code_block(self, block, ctx: _Context) -> None:
        paragraph = self._new_paragraph(ctx)
        run = paragraph.add_run(block.code.rstrip('\n'))
        run.font.name = CODE_FONT
        run.font.size = Pt(CODE_FONT_SIZE_PT)
        paragraph.paragraph_format.space_before = Pt(6)
        paragraph.paragraph_format.space_after = Pt(6)

    def _add_image(self, block, ctx: _Context) -> None:
        paragraph = self._new_paragraph(ctx)
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if not self._add_picture(paragraph, block.asset, block.alt, block.target):
            return
        if block.title:
            caption = self._new_paragraph(replace(ctx, num_id=None))
            caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
            run = caption.add_run(block.title)
            if not self._set_style(caption, "Caption"):
                run.italic = True

    def _add_picture(self, paragraph, asset, alt: str, target: str) -> bool:
        """Embed asset into paragraph; fall back to bracketed alt text."""
        if asset is not None:
            try:
                self.media.add_picture(paragraph.add_run(), asset, alt)
                return True
            except ImageEmbedError as e:
                self.warn(f"Cannot embed image {target}: {e}; rendered as text")
        else:
            self.warn(f"Image {target} is not a local file; rendered as text")
        run = paragraph.add_run(f"[Image: {alt or target}]")
        run.italic = True
        run.font.color.rgb = RGBColor(128, 128, 128)
        return False

    def _add_table(self, rows: List[List[List[Inline]]], alignments: List[Alignment]) -> None:
        columns = max((len(row) for row in rows), default=0)
        if columns == 0:
            return
        table = self.doc.add_table(rows=len(rows), cols=columns)
        if self._has_style("TableGrid"):
            table._tbl.tblPr.style = "TableGrid"
        else:
            self._add_table_borders(table)

        width = Emu(int(self._printable_width() / columns))
        for r, row_data in enumerate(rows):
            row = table.rows[r]
            if r == 0:
                row._tr.get_or_add_trPr().append(OxmlElement('w:tblHeader'))
            for c, cell in enumerate(row.cells):
                cell.width = width
                if c >= len(row_data):
                    continue
                paragraph = cell.paragraphs[0]
                runs = self._add_runs(paragraph, row_data[c])
                if r == 0:
                    for run in runs:
                        run.bold = True
                if c < len(alignments) and alignments[c] in _ALIGNMENT_MAP:
                    paragraph.alignment = _ALIGNMENT_MAP[alignments[c]]

        # Space after table
        self.doc.add_paragraph()

    def _add_horizontal_rule(self, ctx: _Context) -> None:
        """Add horizontal rule as paragraph with bottom border."""
        paragraph = self._new_paragraph(ctx)
        pPr = paragraph._p.get_or_add_pPr()
        pBdr = pPr.find(qn('w:pBdr'))
        if pBdr is None:
            pBdr = OxmlElement('w:pBdr')
            pPr.insert_element_before(pBdr, *_PBDR_SUCCESSORS)
        bottom = OxmlElement('w:bottom')
        bottom.set(qn('w:val'), 'single')
        bottom.set(qn('w:sz'), '6')  # eighths of a point
        bottom.set(qn('w:space'), '1')
        bottom.set(qn('w:color'), 'auto')
        pBdr.append(bottom)

    def _add_left_border(self, paragraph) -> None:
        """Quote bar on the left of a paragraph."""
        pPr = paragraph._p.get_or_add_pPr()
        pBdr = OxmlElement('w:pBdr')
        left = OxmlElement('w:left')
        left.set(qn('w:val'), 'single')
        left.set(qn('w:sz'), '12')
        left.set(qn('w:space'), '8')
        left.set(qn('w:color'), 'CCCCCC')
        pBdr.append(left)
        pPr.insert_element_before(pBdr, *_PBDR_SUCCESSORS)

    def _add_table_borders(self, table) -> None:
        tblPr = table._tbl.tblPr
        borders = OxmlElement('w:tblBorders')
        for edge in ('top', 'left', 'bottom', 'right', 'insideH', 'insideV'):
            element = OxmlElement(f'w:{edge}')
            element.set(qn('w:val'), 'single')
            element.set(qn('w:sz'), '4')
            element.set(qn('w:space'), '0')
            element.set(qn('w:color'), 'auto')
            borders.append(element)
        tblPr.insert_element_before(borders, *_TBLBORDERS_SUCCESSORS)

    def _add_raw_html(self, block, ctx: _Context) -> None:
        html = block.html.strip()
        if html.startswith('<!--') and html.endswith('-->'):
            logger.debug("Dropping HTML comment")
            return
        self.warn(f"Raw HTML is not supported in DOCX; rendered as text: {html[:40]!r}")
        self._new_paragraph(ctx).add_run(html)

    # ------------------------------------------------------------------
    # Inline runs
    # ------------------------------------------------------------------

    def _add_runs(self, paragraph, runs: List[Inline]) -> list:
        """Append inline runs; returns the python-docx runs created for text."""
        created = []
        for item in runs:
            if isinstance(item, TextRun):
                run = paragraph.add_run(item.text)
                run.bold = item.bold or None
                run.italic = item.italic or None
                if item.strikethrough:
                    run.font.strike = True
                if item.code:
                    run.font.name = CODE_FONT
                if item.link:
                    self._link_run(paragraph, run, item.link)
                created.append(run)
            elif isinstance(item, InlineImage):
                self._add_picture(paragraph, item.asset, item.alt, item.target)
            elif isinstance(item, LineBreak):
                paragraph.add_run().add_break(WD_BREAK.LINE)
        return created

    def _link_run(self, paragraph, run, href: str) -> None:
        """Links to sections jump to their bookmark; URLs become external hyperlinks."""
        run.font.underline = True
        run.font.color.rgb = RGBColor(0x05, 0x63, 0xC1)
        bookmark = self.targets.resolve(href, self._source_path) if self.targets else None
        hyperlink = OxmlElement('w:hyperlink')
        if bookmark is not None:
            hyperlink.set(qn('w:anchor'), bookmark)
            hyperlink.set(qn('w:history'), '1')
        elif '://' in href or href.startswith('mailto:'):
            hyperlink.set(qn('r:id'), paragraph.part.relate_to(href, RT.HYPERLINK, is_external=True))
        else:
            return
        run._r.addprevious(hyperlink)
        hyperlink.append(run._r)
