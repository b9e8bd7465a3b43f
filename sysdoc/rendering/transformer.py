"""
Document Transformer - builds the UnifiedDocument from a loaded SourceSet.

Flow:
    SourceSet (flat RawSections) -> DocumentTransformer -> UnifiedDocument

Steps:
1. Sort every RawSection by SectionNumber (numeric comparison).
2. Attach each section under the nearest preceding section whose number is
   a strict prefix of its own. A section with no such ancestor becomes a
   root; when its number has more than one component an implied top-level
   parent (e.g. "1" for "1.1") is created once so that sibling files share
   a root. Intermediate levels are never invented.
3. depth = distance from the root, heading_level = min(depth + 1, max).
   Deeper sections share the deepest level and a warning is recorded.
4. Convert markdown-it block tokens into content blocks. An image whose
   paragraph held nothing else becomes an Image block; all other images
   stay inline in their Paragraph.
5. Resolve media by path and collect the referenced assets, deduplicated
   by absolute path.

The input is expected to have passed the loader and the reference
validator; numbering syntax is not re-checked here.
"""

import csv
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from markdown_it.token import Token

from config.constants import DOCX_MAX_HEADING_LEVEL
from ..anchors import section_anchors
from ..errors import StructuralError
from ..source.models import ImageReference, MediaAsset, RawSection, SourceSet, TableReference
from ..source.section_number import SectionNumber
from .document_model import (
    Alignment,
    Block,
    BlockQuote,
    CodeBlock,
    CsvTable,
    DocumentMetadata,
    DocumentSection,
    Heading,
    Image,
    Inline,
    InlineImage,
    LineBreak,
    ListBlock,
    Paragraph,
    RawHtml,
    Rule,
    Table,
    TextRun,
    UnifiedDocument,
)
from .traceability import TraceabilityIndex

logger = logging.getLogger(__name__)

_ALIGNMENTS = {
    'text-align:left': Alignment.LEFT,
    'text-align:center': Alignment.CENTER,
    'text-align:right': Alignment.RIGHT,
}


class DocumentTransformer:
    """
    Builds a UnifiedDocument from a SourceSet.

    Usage:
        transformer = DocumentTransformer(max_heading_level=9)
        document = transformer.transform(source_set, metadata)
    """

    def __init__(self, max_heading_level: int = DOCX_MAX_HEADING_LEVEL):
        if max_heading_level < 1:
            raise ValueError("max_heading_level must be at least 1")
        self.max_heading_level = max_heading_level

    def transform(
        self,
        source_set: SourceSet,
        metadata: Optional[DocumentMetadata] = None,
    ) -> UnifiedDocument:
        """
        Build the document tree.

        Args:
            source_set: Loaded sources (see SourceLoader).
            metadata: Document metadata; defaults to empty values.

        Returns:
            UnifiedDocument ready for export.
        """
        state = _TransformState(source_set)
        document = UnifiedDocument(
            metadata=metadata or DocumentMetadata(),
            root=source_set.root,
            max_heading_level=self.max_heading_level,
        )

        raw_sections = sorted(source_set.sections, key=lambda s: (s.number, s.source_path))
        for previous, current in zip(raw_sections, raw_sections[1:]):
            if previous.number == current.number:
                raise StructuralError(
                    f"Section {current.number} is defined in both "
                    f"{previous.source_path} and {current.source_path}"
                )

        traceability = TraceabilityIndex.from_sections(raw_sections)
        stack: List[DocumentSection] = []

        for raw in raw_sections:
            while stack and not stack[-1].number.is_prefix_of(raw.number):
                stack.pop()

            if not stack and raw.number.depth > 1:
                implied = self._implied_parent(raw.number, source_set, document)
                document.sections.append(implied)
                stack.append(implied)

            node = self._new_section(
                raw.number, raw.heading_text, len(stack), document,
                source_path=raw.source_path,
            )
            node.section_id = raw.metadata.section_id if raw.metadata else None
            if raw.heading_inline is not None:
                node.heading_runs = state.convert_inlines(raw.heading_inline.children)
            node.blocks = state.convert_blocks(raw.events)
            if raw.metadata is not None and raw.metadata.requests_tables:
                node.blocks.extend(traceability.tables_for(raw.metadata))

            if stack:
                stack[-1].children.append(node)
            else:
                document.sections.append(node)
            stack.append(node)

            document.file_anchors.setdefault(raw.source_path, []).extend(
                sorted(section_anchors(raw.number, raw.heading_text, node.section_id))
            )

        document.images = list(state.images.values())
        document.tables = list(state.tables.values())
        document.warnings.extend(state.warnings)

        logger.info(
            f"Built document: {document.get_statistics()['sections']} sections, "
            f"{len(document.images)} images, {len(document.tables)} tables"
        )
        return document

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def _new_section(
        self,
        number: SectionNumber,
        title: str,
        depth: int,
        document: UnifiedDocument,
        source_path: Optional[str] = None,
    ) -> DocumentSection:
        level = depth + 1
        if level > self.max_heading_level:
            warning = (
                f"Section {number} is nested {level} levels deep; "
                f"using heading level {self.max_heading_level}"
            )
            logger.warning(warning)
            document.warnings.append(warning)
            level = self.max_heading_level
        return DocumentSection(
            number=number,
            title=title,
            depth=depth,
            heading_level=level,
            source_path=source_path,
        )

    def _implied_parent(
        self,
        number: SectionNumber,
        source_set: SourceSet,
        document: UnifiedDocument,
    ) -> DocumentSection:
        top = number.top_level()
        title = source_set.folder_titles.get(top.parts, "")
        logger.debug(f"Section {number} has no file for {top}; adding implied parent '{title}'")
        return self._new_section(top, title, 0, document)


class _TransformState:
    """Per-run state: asset lookup, collected assets and warnings."""

    def __init__(self, source_set: SourceSet):
        self.assets = source_set.assets
        self.images: Dict[Path, MediaAsset] = {}
        self.tables: Dict[Path, MediaAsset] = {}
        self.warnings: List[str] = []

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def convert_blocks(self, tokens: List[Token]) -> List[Block]:
        blocks, _ = self._blocks_until(tokens, 0, None)
        return blocks

    def convert_inlines(self, children: Optional[List[Token]]) -> List[Inline]:
        return self._inlines(children)

    def _blocks_until(
        self,
        tokens: List[Token],
        index: int,
        close_type: Optional[str],
    ) -> Tuple[List[Block], int]:
        """Convert tokens until ``close_type`` (returned index points at it)."""
        blocks: List[Block] = []
        while index < len(tokens):
            token = tokens[index]
            kind = token.type

            if kind == close_type:
                return blocks, index

            if kind == 'paragraph_open':
                blocks.append(self._paragraph(tokens[index + 1]))
                index += 3
            elif kind == 'heading_open':
                blocks.append(Heading(
                    level=int(token.tag[1:]),
                    runs=self._inlines(tokens[index + 1].children),
                ))
                index += 3
            elif kind == 'blockquote_open':
                inner, index = self._blocks_until(tokens, index + 1, 'blockquote_close')
                blocks.append(BlockQuote(blocks=inner))
                index += 1
            elif kind in ('bullet_list_open', 'ordered_list_open'):
                block, index = self._list(tokens, index)
                blocks.append(block)
            elif kind == 'table_open':
                block, index = self._table(tokens, index)
                blocks.append(block)
            elif kind == 'fence':
                language = token.info.strip().split()[0] if token.info.strip() else None
                blocks.append(CodeBlock(code=token.content, language=language))
                index += 1
            elif kind == 'code_block':
                blocks.append(CodeBlock(code=token.content))
                index += 1
            elif kind == 'hr':
                blocks.append(Rule())
                index += 1
            elif kind == 'html_block':
                ref = token.meta.get('table_ref')
                blocks.append(self._csv_table(ref) if ref else RawHtml(html=token.content))
                index += 1
            else:
                logger.debug(f"Ignoring markdown token {kind}")
                index += 1
        return blocks, index

    def _paragraph(self, inline: Token) -> Block:
        images = [c for c in inline.children or [] if c.type == 'image']
        if len(images) == 1:
            ref: Optional[ImageReference] = images[0].meta.get('image_ref')
            if ref is not None and ref.standalone:
                return self._image_block(ref)
        return Paragraph(runs=self._inlines(inline.children))

    def _list(self, tokens: List[Token], index: int) -> Tuple[ListBlock, int]:
        opener = tokens[index]
        ordered = opener.type == 'ordered_list_open'
        close_type = 'ordered_list_close' if ordered else 'bullet_list_close'
        start = opener.attrGet('start')
        block = ListBlock(
            ordered=ordered,
            start=int(start) if ordered and start is not None else (1 if ordered else None),
        )
        index += 1
        while index < len(tokens) and tokens[index].type != close_type:
            if tokens[index].type == 'list_item_open':
                item, index = self._blocks_until(tokens, index + 1, 'list_item_close')
                block.items.append(item)
            index += 1
        return block, index + 1

    def _table(self, tokens: List[Token], index: int) -> Tuple[Table, int]:
        table = Table()
        in_head = False
        row: List[List[Inline]] = []
        index += 1
        while index < len(tokens) and tokens[index].type != 'table_close':
            token = tokens[index]
            if token.type == 'thead_open':
                in_head = True
            elif token.type == 'thead_close':
                in_head = False
            elif token.type == 'tr_open':
                row = []
            elif token.type == 'th_open':
                table.alignments.append(_ALIGNMENTS.get(token.attrGet('style') or '', Alignment.NONE))
            elif token.type == 'inline':
                row.append(self._inlines(token.children))
            elif token.type == 'tr_close':
                if in_head:
                    table.header = row
                else:
                    table.rows.append(row)
            index += 1
        return table, index + 1

    # ------------------------------------------------------------------
    # Inline runs
    # ------------------------------------------------------------------

    def _inlines(self, children: Optional[List[Token]]) -> List[Inline]:
        runs: List[Inline] = []
        bold = italic = strike = 0
        link: Optional[str] = None

        for child in children or []:
            kind = child.type
            if kind == 'text':
                if child.content:
                    runs.append(TextRun(child.content, bold > 0, italic > 0, strike > 0, False, link))
            elif kind == 'code_inline':
                runs.append(TextRun(child.content, bold > 0, italic > 0, strike > 0, True, link))
            elif kind == 'softbreak':
                runs.append(TextRun(' ', bold > 0, italic > 0, strike > 0, False, link))
            elif kind == 'hardbreak':
                runs.append(LineBreak())
            elif kind == 'strong_open':
                bold += 1
            elif kind == 'strong_close':
                bold -= 1
            elif kind == 'em_open':
                italic += 1
            elif kind == 'em_close':
                italic -= 1
            elif kind == 's_open':
                strike += 1
            elif kind == 's_close':
                strike -= 1
            elif kind == 'link_open':
                link = child.attrGet('href')
            elif kind == 'link_close':
                link = None
            elif kind == 'image':
                runs.append(self._inline_image(child))
            elif kind == 'html_inline':
                if child.content.strip().lower() in ('<br>', '<br/>', '<br />'):
                    runs.append(LineBreak())
                else:
                    runs.append(TextRun(child.content, link=link))
        return runs

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def _lookup_image(self, ref: ImageReference) -> Optional[MediaAsset]:
        if ref.path is None:
            return None
        asset = self.assets.get(ref.path)
        if asset is not None and asset.is_image:
            self.images.setdefault(asset.absolute_path, asset)
            return asset
        return None

    def _image_block(self, ref: ImageReference) -> Image:
        return Image(
            target=ref.target,
            path=ref.path,
            alt=ref.alt,
            title=ref.title,
            asset=self._lookup_image(ref),
        )

    def _inline_image(self, token: Token) -> InlineImage:
        ref: Optional[ImageReference] = token.meta.get('image_ref')
        if ref is None:
            target = token.attrGet('src') or ''
            return InlineImage(target=target, path=None, alt=token.content)
        return InlineImage(
            target=ref.target,
            path=ref.path,
            alt=ref.alt,
            title=ref.title,
            asset=self._lookup_image(ref),
        )

    def _csv_table(self, ref: TableReference) -> CsvTable:
        asset = self.assets.get(ref.path)
        block = CsvTable(path=ref.path, target=ref.target)
        if asset is None:
            return block

        self.tables.setdefault(asset.absolute_path, asset)
        block.asset = asset
        try:
            text = asset.data.decode('utf-8-sig')
        except (OSError, UnicodeDecodeError) as e:
            warning = f"Cannot read table {ref.path}: {e}"
            logger.warning(warning)
            self.warnings.append(warning)
            return block

        rows = [row for row in csv.reader(io.StringIO(text)) if row]
        if rows:
            block.header = rows[0]
            block.rows = rows[1:]
        return block
