"""
Exporters: DOCX (template based), aggregated Markdown and single-page HTML.
"""

from .base import BaseExporter, ExportFormat
from .docx_template_exporter import DocxTemplateExporter, TemplateCache
from .html_exporter import HtmlExporter
from .markdown_exporter import MarkdownExporter

__all__ = [
    'BaseExporter',
    'ExportFormat',
    'DocxTemplateExporter',
    'TemplateCache',
    'MarkdownExporter',
    'HtmlExporter',
]
