"""
Document model and the transformer that builds it.
"""

from .document_model import (
    BlockType,
    Alignment,
    TextRun,
    InlineImage,
    LineBreak,
    Block,
    Paragraph,
    Heading,
    BlockQuote,
    CodeBlock,
    ListBlock,
    Table,
    CsvTable,
    Image,
    Rule,
    RawHtml,
    DocumentSection,
    DocumentMetadata,
    UnifiedDocument,
)
from .transformer import DocumentTransformer

__all__ = [
    'BlockType',
    'Alignment',
    'TextRun',
    'InlineImage',
    'LineBreak',
    'Block',
    'Paragraph',
    'Heading',
    'BlockQuote',
    'CodeBlock',
    'ListBlock',
    'Table',
    'CsvTable',
    'Image',
    'Rule',
    'RawHtml',
    'DocumentSection',
    'DocumentMetadata',
    'UnifiedDocument',
    'DocumentTransformer',
]
