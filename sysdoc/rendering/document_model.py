"""
Unified Document model - the hierarchical, heading-normalized form every
exporter consumes.

    UnifiedDocument
      ├── metadata: DocumentMetadata
      ├── sections: [DocumentSection]        roots, canonical order
      │     ├── blocks:   [Block]            closed variant set (BlockType)
      │     └── children: [DocumentSection]
      ├── images / tables: [MediaAsset]      deduplicated by absolute path
      └── warnings: [str]                    non-fatal notes (heading clamp, fallbacks)

Block kinds are a fixed set; exporters dispatch on ``block_type`` and must
handle every member of BlockType.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from ..source.models import MediaAsset
from ..source.section_number import SectionNumber


# ============================================================================
# Enums
# ============================================================================

class BlockType(Enum):
    """Types of block-level content."""
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    CODE_BLOCK = "code_block"
    LIST = "list"
    TABLE = "table"
    CSV_TABLE = "csv_table"
    IMAGE = "image"
    RULE = "rule"
    RAW_HTML = "raw_html"


class Alignment(Enum):
    """Table column alignment."""
    NONE = "none"
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


# ============================================================================
# Inline runs
# ============================================================================

@dataclass
class TextRun:
    """A span of text with uniform formatting."""
    text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    code: bool = False
    link: Optional[str] = None


@dataclass
class InlineImage:
    """An image that sits inside a paragraph next to other content."""
    target: str
    path: Optional[str]
    alt: str = ""
    title: str = ""
    asset: Optional[MediaAsset] = None


@dataclass
class LineBreak:
    """Hard line break inside a paragraph."""


Inline = Union[TextRun, InlineImage, LineBreak]


def runs_to_text(runs: List[Inline]) -> str:
    """Flatten inline runs to plain text (images contribute their alt)."""
    parts = []
    for run in runs:
        if isinstance(run, TextRun):
            parts.append(run.text)
        elif isinstance(run, InlineImage):
            parts.append(run.alt)
        else:
            parts.append('\n')
    return ''.join(parts)


# ============================================================================
# Blocks
# ============================================================================

@dataclass
class Block:
    """Base class for all block-level content."""
    # block_type is set by subclasses in __post_init__, not passed as parameter
    block_type: BlockType = field(init=False, default=BlockType.PARAGRAPH)


@dataclass
class Paragraph(Block):
    runs: List[Inline] = field(default_factory=list)

    def __post_init__(self):
        self.block_type = BlockType.PARAGRAPH

    @property
    def text(self) -> str:
        return runs_to_text(self.runs)


@dataclass
class Heading(Block):
    """A heading nested inside other content (quotes, list items)."""
    level: int = 1
    runs: List[Inline] = field(default_factory=list)

    def __post_init__(self):
        self.block_type = BlockType.HEADING


@dataclass
class BlockQuote(Block):
    blocks: List[Block] = field(default_factory=list)

    def __post_init__(self):
        self.block_type = BlockType.BLOCKQUOTE


@dataclass
class CodeBlock(Block):
    code: str = ""
    language: Optional[str] = None

    def __post_init__(self):
        self.block_type = BlockType.CODE_BLOCK


@dataclass
class ListBlock(Block):
    """Ordered or bullet list; each item is a list of blocks."""
    ordered: bool = False
    start: Optional[int] = None
    items: List[List[Block]] = field(default_factory=list)

    def __post_init__(self):
        self.block_type = BlockType.LIST


@dataclass
class Table(Block):
    """A Markdown pipe table; every cell is a run sequence."""
    alignments: List[Alignment] = field(default_factory=list)
    header: List[List[Inline]] = field(default_factory=list)
    rows: List[List[List[Inline]]] = field(default_factory=list)

    def __post_init__(self):
        self.block_type = BlockType.TABLE


@dataclass
class CsvTable(Block):
    """A table loaded from a CSV file via a TABLE marker."""
    path: str = ""
    target: str = ""
    header: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    asset: Optional[MediaAsset] = None

    def __post_init__(self):
        self.block_type = BlockType.CSV_TABLE


@dataclass
class Image(Block):
    """A block-level image (its paragraph contained nothing else)."""
    target: str = ""
    path: Optional[str] = None
    alt: str = ""
    title: str = ""
    asset: Optional[MediaAsset] = None

    def __post_init__(self):
        self.block_type = BlockType.IMAGE


@dataclass
class Rule(Block):
    def __post_init__(self):
        self.block_type = BlockType.RULE


@dataclass
class RawHtml(Block):
    html: str = ""

    def __post_init__(self):
        self.block_type = BlockType.RAW_HTML


# ============================================================================
# Sections and document
# ============================================================================

@dataclass
class DocumentSection:
    """A node in the section tree."""
    number: SectionNumber
    title: str
    depth: int
    heading_level: int
    heading_runs: List[Inline] = field(default_factory=list)   # title as inline runs, empty for implied parents
    blocks: List[Block] = field(default_factory=list)
    children: List["DocumentSection"] = field(default_factory=list)
    source_path: Optional[str] = None    # None for implied parents
    section_id: Optional[str] = None

    @property
    def heading_text(self) -> str:
        return f"{self.number} {self.title}".strip()

    @property
    def is_implied(self) -> bool:
        return self.source_path is None

    def walk(self) -> Iterator["DocumentSection"]:
        """Pre-order traversal of this section and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class DocumentMetadata:
    """Document-level metadata, mostly from sysdoc.toml."""
    title: str = ""
    subtitle: str = ""
    description: str = ""
    document_id: str = ""
    system_id: str = ""
    document_type: str = ""
    standard: str = ""
    owner_name: str = ""
    owner_email: str = ""
    approver_name: str = ""
    approver_email: str = ""

    @classmethod
    def from_config(cls, config) -> "DocumentMetadata":
        """Build from a DocumentConfig."""
        return cls(
            title=config.document_title,
            subtitle=config.document_subtitle,
            description=config.document_description,
            document_id=config.document_id,
            system_id=config.system_id,
            document_type=config.document_type,
            standard=config.document_standard,
            owner_name=config.document_owner.name,
            owner_email=config.document_owner.email,
            approver_name=config.document_approver.name,
            approver_email=config.document_approver.email,
        )

    @property
    def keywords(self) -> List[str]:
        """Identifier keywords in a fixed order, empty values skipped."""
        values = [self.document_id, self.system_id, self.document_type, self.standard]
        return [v for v in values if v]


@dataclass
class UnifiedDocument:
    """The complete document, ready for export."""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    sections: List[DocumentSection] = field(default_factory=list)
    images: List[MediaAsset] = field(default_factory=list)
    tables: List[MediaAsset] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    root: Optional[Path] = None
    max_heading_level: int = 9
    # root-relative .md path -> anchors of the sections it produced
    file_anchors: Dict[str, List[str]] = field(default_factory=dict)

    def walk(self) -> Iterator[DocumentSection]:
        """Canonical reading order."""
        for section in self.sections:
            yield from section.walk()

    def get_statistics(self) -> Dict[str, int]:
        """Get document statistics."""
        sections = list(self.walk())
        return {
            "sections": len(sections),
            "blocks": sum(len(s.blocks) for s in sections),
            "images": len(self.images),
            "tables": len(self.tables),
            "warnings": len(self.warnings),
        }
