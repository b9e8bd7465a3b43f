#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Markdown Bundle Exporter - Export UnifiedDocument to one Markdown file.

Output layout:
    build/
      document.md          every section, numbered headings
      images/              referenced images, root-relative paths kept
        figures/arch.svg

Supports:
- Numbered headings ("## 1.2 Scope"), level capped at 6
- Paragraphs with bold/italic/strikethrough/code/link runs
- Lists, block quotes, code blocks, rules, raw HTML
- Pipe tables for both Markdown and CSV tables
- Optional table of contents with anchor links
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Union
from urllib.parse import quote

from config.constants import BUNDLE_IMAGES_DIR, MARKDOWN_MAX_HEADING_LEVEL
from ..anchors import heading_to_anchor
from ..errors import ExportError
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
from .base import BaseExporter, replace_directory, stage_bytes

logger = logging.getLogger(__name__)

_ALIGN_MARKERS = {
    Alignment.NONE: '---',
    Alignment.LEFT: ':---',
    Alignment.CENTER: ':---:',
    Alignment.RIGHT: '---:',
}


class MarkdownExporter(BaseExporter):
    """
    Export UnifiedDocument to an aggregated Markdown bundle.

    Usage:
        exporter = MarkdownExporter()
        path = exporter.export(document, "build/document.md")
    """

    def __init__(self, include_toc: bool = False, toc_title: str = "Table of Contents"):
        """
        Initialize exporter.

        Args:
            include_toc: Whether to include a table of contents
            toc_title: Title for the TOC
        """
        super().__init__()
        self.include_toc = include_toc
        self.toc_title = toc_title

    @classmethod
    def supports_format(cls, format_name: str) -> bool:
        return format_name.lower() in ("markdown", "md")

    @classmethod
    def get_supported_formats(cls) -> List[str]:
        return ["markdown", "md"]

    def export(self, document: UnifiedDocument, output_path: Union[str, Path]) -> Path:
        """
        Write the Markdown file and copy images next to it.

        Both the text and the images are staged first; the images folder is
        swapped in, then the Markdown file. A document without images
        removes any images folder left by a previous build.

        Returns:
            Path to the Markdown file
        """
        output_path = Path(output_path)
        self.warnings = []
        text = self.render(document)
        images_dir = output_path.parent / BUNDLE_IMAGES_DIR

        staged_text = stage_bytes(output_path, text.encode('utf-8'))
        try:
            staged_images = self._stage_images(document, images_dir) if document.images else None
            if staged_images is not None:
                replace_directory(staged_images, images_dir)
            elif images_dir.is_dir():
                logger.info(f"Removing stale {images_dir}")
                shutil.rmtree(images_dir)
            os.replace(staged_text, output_path)
        except OSError as e:
            raise ExportError(f"Cannot write {output_path}: {e}") from e
        finally:
            staged_text.unlink(missing_ok=True)

        logger.info(f"Markdown saved: {output_path} ({len(document.images)} image(s))")
        return output_path

    def render(self, document: UnifiedDocument) -> str:
        """Render the whole document to a Markdown string."""
        parts: List[str] = []

        # The bundle is itself a valid source file: at most one level-1
        # heading, so sections move down a level under a title or when
        # there is more than one top-level section.
        shift = 1 if document.metadata.title or len(document.sections) > 1 else 0

        if document.metadata.title:
            parts.append(f"# {document.metadata.title}")
            if document.metadata.subtitle:
                parts.append(f"*{document.metadata.subtitle}*")

        if self.include_toc:
            parts.append(self._generate_toc(document))

        for section in document.walk():
            parts.append(self._heading(section, shift))
            for block in section.blocks:
                rendered = self._block_to_md(block)
                if rendered:
                    parts.append(rendered)

        return '\n\n'.join(parts) + '\n'

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @staticmethod
    def bundle_path(asset_path: str) -> str:
        """Where an image lives inside the bundle, relative to the .md file."""
        return f"{BUNDLE_IMAGES_DIR}/{asset_path}"

    def _stage_images(self, document: UnifiedDocument, images_dir: Path) -> Path:
        staging = Path(tempfile.mkdtemp(prefix=f".{images_dir.name}.", dir=images_dir.parent))
        try:
            for asset in document.images:
                target = staging / asset.path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(asset.data)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return staging

    def _image_to_md(self, target: str, asset, alt: str, title: str) -> str:
        if asset is not None:
            destination = quote(self.bundle_path(asset.path), safe='/')
        else:
            destination = target
        title_part = f' "{title}"' if title else ''
        return f"![{alt}]({destination}{title_part})"

    # ------------------------------------------------------------------
    # Headings and TOC
    # ------------------------------------------------------------------

    def _heading(self, section: DocumentSection, shift: int = 0) -> str:
        level = min(section.heading_level + shift, MARKDOWN_MAX_HEADING_LEVEL)
        if section.heading_runs:
            text = f"{section.number} {self._runs_to_md(section.heading_runs)}".rstrip()
        else:
            text = section.heading_text
        return f"{'#' * level} {text}"

    def _generate_toc(self, document: UnifiedDocument) -> str:
        lines = [f"**{self.toc_title}**", ""]
        for section in document.walk():
            indent = '  ' * section.depth
            anchor = heading_to_anchor(section.heading_text)
            lines.append(f"{indent}- [{section.heading_text}](#{anchor})")
        return '\n'.join(lines)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _block_to_md(self, block: Block) -> str:
        kind = block.block_type
        if kind == BlockType.PARAGRAPH:
            return self._runs_to_md(block.runs)
        if kind == BlockType.HEADING:
            return f"{'#' * min(block.level, MARKDOWN_MAX_HEADING_LEVEL)} {self._runs_to_md(block.runs)}"
        if kind == BlockType.BLOCKQUOTE:
            inner = '\n\n'.join(filter(None, (self._block_to_md(b) for b in block.blocks)))
            return '\n'.join(f"> {line}" if line else '>' for line in inner.split('\n'))
        if kind == BlockType.CODE_BLOCK:
            fence = '~~~~' if '```' in block.code else '```'
            code = block.code if block.code.endswith('\n') else block.code + '\n'
            return f"{fence}{block.language or ''}\n{code}{fence}"
        if kind == BlockType.LIST:
            return self._list_to_md(block)
        if kind == BlockType.TABLE:
            header = [self._cell(self._runs_to_md(cell)) for cell in block.header]
            rows = [[self._cell(self._runs_to_md(cell)) for cell in row] for row in block.rows]
            return self._pipe_table(header, rows, block.alignments)
        if kind == BlockType.CSV_TABLE:
            if not block.header:
                self.warn(f"Table {block.path} is empty or unreadable; skipped")
                return ''
            header = [self._cell(c) for c in block.header]
            rows = [[self._cell(c) for c in row] for row in block.rows]
            return self._pipe_table(header, rows, [])
        if kind == BlockType.IMAGE:
            return self._image_to_md(block.target, block.asset, block.alt, block.title)
        if kind == BlockType.RULE:
            return '---'
        if kind == BlockType.RAW_HTML:
            return block.html.rstrip('\n')
        self.warn(f"Unsupported block {kind.value}; skipped")
        return ''

    def _list_to_md(self, block) -> str:
        lines: List[str] = []
        number = block.start if block.start is not None else 1
        for item in block.items:
            marker = f"{number}. " if block.ordered else "- "
            pad = ' ' * len(marker)
            body = '\n\n'.join(filter(None, (self._block_to_md(b) for b in item)))
            item_lines = body.split('\n') if body else ['']
            lines.append(marker + item_lines[0])
            lines.extend(pad + line if line else '' for line in item_lines[1:])
            number += 1
        return '\n'.join(lines)

    @staticmethod
    def _pipe_table(header: List[str], rows: List[List[str]], alignments: List[Alignment]) -> str:
        columns = max([len(header)] + [len(r) for r in rows])
        header = header + [''] * (columns - len(header))
        markers = [
            _ALIGN_MARKERS[alignments[i]] if i < len(alignments) else '---'
            for i in range(columns)
        ]
        lines = [
            '| ' + ' | '.join(header) + ' |',
            '| ' + ' | '.join(markers) + ' |',
        ]
        for row in rows:
            row = row + [''] * (columns - len(row))
            lines.append('| ' + ' | '.join(row) + ' |')
        return '\n'.join(lines)

    @staticmethod
    def _cell(text: str) -> str:
        return text.replace('|', '\\|').replace('\n', ' ')

    # ------------------------------------------------------------------
    # Inline runs
    # ------------------------------------------------------------------

    def _runs_to_md(self, runs: List[Inline]) -> str:
        parts: List[str] = []
        index = 0
        while index < len(runs):
            run = runs[index]
            if isinstance(run, TextRun) and run.link:
                # adjacent runs sharing a link form one [text](href)
                group = []
                while index < len(runs) and isinstance(runs[index], TextRun) and runs[index].link == run.link:
                    group.append(self._text_run_to_md(runs[index]))
                    index += 1
                parts.append(f"[{''.join(group)}]({run.link})")
                continue
            if isinstance(run, TextRun):
                parts.append(self._text_run_to_md(run))
            elif isinstance(run, InlineImage):
                parts.append(self._image_to_md(run.target, run.asset, run.alt, run.title))
            elif isinstance(run, LineBreak):
                parts.append('  \n')
            index += 1
        return ''.join(parts)

    @staticmethod
    def _text_run_to_md(run: TextRun) -> str:
        text = run.text
        if run.code:
            ticks = '``' if '`' in text else '`'
            text = f"{ticks}{text}{ticks}"
        if run.strikethrough:
            text = f"~~{text}~~"
        if run.italic:
            text = f"*{text}*"
        if run.bold:
            text = f"**{text}**"
        return text
