#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HTML Exporter - Export UnifiedDocument to one self-contained HTML page.

Output:
    build/document.html     metadata header, numbered sections, images
                            embedded as base64 data URIs

Supports:
- Document title, subtitle, description and an identifier table
- Numbered section headings with ids that internal links jump to
- Paragraphs with bold/italic/strikethrough/code/link runs
- Lists, block quotes, code blocks, rules, raw HTML passthrough
- Aligned Markdown tables and CSV tables
"""

import base64
import html
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from config.constants import MARKDOWN_MAX_HEADING_LEVEL
from ..rendering.document_model import (
    Alignment,
    Block,
    BlockType,
    DocumentMetadata,
    DocumentSection,
    Inline,
    InlineImage,
    LineBreak,
    TextRun,
    UnifiedDocument,
)
from .base import BaseExporter, atomic_write_bytes
from .section_targets import SectionTargets, target_name

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.bmp': 'image/bmp',
    '.svg': 'image/svg+xml',
}

_ALIGN_STYLES = {
    Alignment.LEFT: ' style="text-align: left"',
    Alignment.CENTER: ' style="text-align: center"',
    Alignment.RIGHT: ' style="text-align: right"',
}

CSS_STYLES = """\
body { font-family: 'Segoe UI', Arial, sans-serif; line-height: 1.5; color: #333; margin: 0; }
.container { max-width: 900px; margin: 0 auto; padding: 40px 20px; }
.document-title { color: #00008B; border-bottom: 2px solid #00008B; padding-bottom: 8px; }
.subtitle { font-size: 1.2em; color: #555; }
.metadata { margin-bottom: 30px; }
.metadata-table td { padding: 2px 12px 2px 0; border: none; }
.metadata-table .label { font-weight: bold; }
.section-number { color: #666; }
table { border-collapse: collapse; margin: 12px 0; }
th, td { border: 1px solid #ccc; padding: 4px 8px; }
th { background-color: #f0f0f0; }
blockquote { color: #555; margin: 12px 0; padding: 4px 16px; border-left: 3px solid #ddd; }
pre, code { font-family: 'Courier New', monospace; background-color: #f5f5f5; }
pre { padding: 10px; overflow-x: auto; }
figure { margin: 16px 0; text-align: center; }
figure img, p img { max-width: 100%; }
figcaption { font-style: italic; color: #555; }
"""


class HtmlExporter(BaseExporter):
    """
    Export UnifiedDocument to a single HTML file.

    Usage:
        exporter = HtmlExporter()
        path = exporter.export(document, "build/document.html")
    """

    def __init__(self):
        super().__init__()
        self.targets: Optional[SectionTargets] = None
        self._source_path: Optional[str] = None

    @classmethod
    def supports_format(cls, format_name: str) -> bool:
        return format_name.lower() in ("html", "htm")

    @classmethod
    def get_supported_formats(cls) -> List[str]:
        return ["html", "htm"]

    def export(self, document: UnifiedDocument, output_path: Union[str, Path]) -> Path:
        """
        Write the HTML page.

        Returns:
            Path to the HTML file
        """
        output_path = Path(output_path)
        self.warnings = []
        text = self.render(document)
        atomic_write_bytes(output_path, text.encode('utf-8'))
        logger.info(f"HTML saved: {output_path} ({len(document.images)} embedded image(s))")
        return output_path

    def render(self, document: UnifiedDocument) -> str:
        """Render the whole document to an HTML string."""
        self.targets = SectionTargets(document)
        metadata = document.metadata
        parts: List[str] = [
            '<!DOCTYPE html>',
            '<html lang="en">',
            '<head>',
            '<meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
            f'<title>{html.escape(metadata.title)}</title>',
        ]
        if metadata.keywords:
            parts.append(f'<meta name="keywords" content="{html.escape(", ".join(metadata.keywords))}">')
        if metadata.owner_name:
            parts.append(f'<meta name="author" content="{html.escape(metadata.owner_name)}">')
        parts += ['<style>', CSS_STYLES.rstrip('\n'), '</style>', '</head>', '<body>', '<div class="container">']

        if metadata.title:
            parts.append(f'<h1 class="document-title">{html.escape(metadata.title)}</h1>')
        parts.append(self._metadata_html(metadata))

        # The document title owns <h1> when present
        shift = 1 if metadata.title else 0
        for section in document.walk():
            self._source_path = section.source_path
            parts.append(self._heading(section, shift))
            for block in section.blocks:
                rendered = self._block_to_html(block)
                if rendered:
                    parts.append(rendered)

        parts += ['</div>', '</body>', '</html>']
        return '\n'.join(parts) + '\n'

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    @staticmethod
    def _metadata_html(metadata: DocumentMetadata) -> str:
        lines = ['<div class="metadata">']
        if metadata.subtitle:
            lines.append(f'<p class="subtitle">{html.escape(metadata.subtitle)}</p>')
        if metadata.description:
            lines.append(f'<p class="description">{html.escape(metadata.description)}</p>')

        rows: List[Tuple[str, str]] = [
            ("Document ID", metadata.document_id),
            ("Type", metadata.document_type),
            ("Standard", metadata.standard),
            ("System ID", metadata.system_id),
            ("Owner", _contact(metadata.owner_name, metadata.owner_email)),
            ("Approver", _contact(metadata.approver_name, metadata.approver_email)),
        ]
        rows = [(label, value) for label, value in rows if value]
        if rows:
            lines.append('<table class="metadata-table">')
            for label, value in rows:
                lines.append(f'<tr><td class="label">{label}:</td><td>{html.escape(value)}</td></tr>')
            lines.append('</table>')
        lines.append('</div>')
        return '\n'.join(lines)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _heading(self, section: DocumentSection, shift: int) -> str:
        level = min(section.heading_level + shift, MARKDOWN_MAX_HEADING_LEVEL)
        if section.heading_runs:
            title = self._runs_to_html(section.heading_runs)
        else:
            title = html.escape(section.title)
        number = f'<span class="section-number">{html.escape(str(section.number))}</span>'
        text = f'{number} {title}' if title else number
        return f'<h{level} id="{target_name(section)}" class="section-heading">{text}</h{level}>'

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _block_to_html(self, block: Block) -> str:
        kind = block.block_type
        if kind == BlockType.PARAGRAPH:
            return f'<p>{self._runs_to_html(block.runs)}</p>'
        if kind == BlockType.HEADING:
            level = min(block.level, MARKDOWN_MAX_HEADING_LEVEL)
            return f'<h{level} class="content-heading">{self._runs_to_html(block.runs)}</h{level}>'
        if kind == BlockType.BLOCKQUOTE:
            inner = '\n'.join(filter(None, (self._block_to_html(b) for b in block.blocks)))
            return f'<blockquote>\n{inner}\n</blockquote>'
        if kind == BlockType.CODE_BLOCK:
            language = f' class="language-{html.escape(block.language)}"' if block.language else ''
            return f'<pre><code{language}>{html.escape(block.code)}</code></pre>'
        if kind == BlockType.LIST:
            return self._list_to_html(block)
        if kind == BlockType.TABLE:
            header = [self._runs_to_html(cell) for cell in block.header]
            rows = [[self._runs_to_html(cell) for cell in row] for row in block.rows]
            return self._table(header, rows, block.alignments)
        if kind == BlockType.CSV_TABLE:
            if not block.header:
                self.warn(f"Table {block.path} is empty or unreadable; skipped")
                return ''
            header = [html.escape(c) for c in block.header]
            rows = [[html.escape(c) for c in row] for row in block.rows]
            return self._table(header, rows, [])
        if kind == BlockType.IMAGE:
            img = self._img(block.target, block.asset, block.alt, block.title)
            caption = f'<figcaption>{html.escape(block.title)}</figcaption>' if block.title else ''
            return f'<figure>{img}{caption}</figure>'
        if kind == BlockType.RULE:
            return '<hr>'
        if kind == BlockType.RAW_HTML:
            return block.html.rstrip('\n')
        self.warn(f"Unsupported block {kind.value}; rendered as text")
        return f'<p>{html.escape(str(block))}</p>'

    def _list_to_html(self, block) -> str:
        if block.ordered:
            start = f' start="{block.start}"' if block.start not in (None, 1) else ''
            open_tag, close_tag = f'<ol{start}>', '</ol>'
        else:
            open_tag, close_tag = '<ul>', '</ul>'
        lines = [open_tag]
        for item in block.items:
            # a single paragraph renders tight, like the Markdown it came from
            if len(item) == 1 and item[0].block_type == BlockType.PARAGRAPH:
                body = self._runs_to_html(item[0].runs)
            else:
                body = '\n'.join(filter(None, (self._block_to_html(b) for b in item)))
            lines.append(f'<li>{body}</li>')
        lines.append(close_tag)
        return '\n'.join(lines)

    @staticmethod
    def _table(header: List[str], rows: List[List[str]], alignments: List[Alignment]) -> str:
        columns = max([len(header)] + [len(r) for r in rows])

        def align(i: int) -> str:
            return _ALIGN_STYLES.get(alignments[i], '') if i < len(alignments) else ''

        lines = ['<table>', '<thead>', '<tr>']
        header = header + [''] * (columns - len(header))
        lines.extend(f'<th{align(i)}>{cell}</th>' for i, cell in enumerate(header))
        lines += ['</tr>', '</thead>', '<tbody>']
        for row in rows:
            row = row + [''] * (columns - len(row))
            lines.append('<tr>' + ''.join(f'<td{align(i)}>{cell}</td>' for i, cell in enumerate(row)) + '</tr>')
        lines += ['</tbody>', '</table>']
        return '\n'.join(lines)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _img(self, target: str, asset, alt: str, title: str) -> str:
        title_attr = f' title="{html.escape(title)}"' if title else ''
        alt_attr = html.escape(alt)
        if asset is None:
            if target.startswith(('http://', 'https://', 'data:')):
                return f'<img src="{html.escape(target)}" alt="{alt_attr}"{title_attr}>'
            self.warn(f"Image {target} is not a local file; rendered as text")
            return f'<span class="image-error">[Image: {html.escape(alt or target)}]</span>'

        mime = IMAGE_MIME_TYPES.get(asset.absolute_path.suffix.lower(), 'application/octet-stream')
        try:
            payload = base64.b64encode(asset.data).decode('ascii')
        except OSError as e:
            self.warn(f"Cannot read image {asset.path}: {e}; rendered as text")
            return f'<span class="image-error">[Image: {html.escape(alt or target)}]</span>'
        return f'<img src="data:{mime};base64,{payload}" alt="{alt_attr}"{title_attr}>'

    # ------------------------------------------------------------------
    # Inline runs
    # ------------------------------------------------------------------

    def _runs_to_html(self, runs: List[Inline]) -> str:
        parts: List[str] = []
        index = 0
        while index < len(runs):
            run = runs[index]
            if isinstance(run, TextRun) and run.link:
                # adjacent runs sharing a link form one <a>
                group = []
                while index < len(runs) and isinstance(runs[index], TextRun) and runs[index].link == run.link:
                    group.append(self._text_run_to_html(runs[index]))
                    index += 1
                parts.append(f'<a href="{html.escape(self._href(run.link))}">{"".join(group)}</a>')
                continue
            if isinstance(run, TextRun):
                parts.append(self._text_run_to_html(run))
            elif isinstance(run, InlineImage):
                parts.append(self._img(run.target, run.asset, run.alt, run.title))
            elif isinstance(run, LineBreak):
                parts.append('<br>')
            index += 1
        return ''.join(parts)

    def _href(self, link: str) -> str:
        target = self.targets.resolve(link, self._source_path) if self.targets else None
        return f"#{target}" if target is not None else link

    @staticmethod
    def _text_run_to_html(run: TextRun) -> str:
        text = html.escape(run.text)
        if run.code:
            text = f'<code>{text}</code>'
        if run.strikethrough:
            text = f'<del>{text}</del>'
        if run.italic:
            text = f'<em>{text}</em>'
        if run.bold:
            text = f'<strong>{text}</strong>'
        return text


def _contact(name: str, email: str) -> str:
    if name and email:
        return f"{name} <{email}>"
    return name or email
