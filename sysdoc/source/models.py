"""
Source model - the flat, validated view of a document root.

Produced by SourceLoader and consumed read-only by the validator and the
transformer:

    SourceSet
      ├── files:  [SourceFile]   sorted by SectionNumber
      │             └── sections: [RawSection]  (markdown-it block tokens)
      └── assets: {path: MediaAsset}   images and CSV tables, lazily read
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from markdown_it.token import Token

from .metadata import SectionMetadata
from .section_number import SectionNumber


class MediaKind(Enum):
    """Kinds of non-Markdown files a document may reference."""
    RASTER = "raster"   # png, jpg, gif, bmp
    VECTOR = "vector"   # svg (including .drawio.svg)
    CSV = "csv"


@dataclass(frozen=True)
class MediaAsset:
    """
    An image or table file discovered under the document root.

    The byte payload is read on first access and cached; it is never
    modified afterwards, so concurrent readers are safe.
    """
    path: str            # root-relative POSIX path, e.g. "figures/arch.svg"
    absolute_path: Path
    kind: MediaKind

    @cached_property
    def data(self) -> bytes:
        return self.absolute_path.read_bytes()

    @property
    def is_image(self) -> bool:
        return self.kind in (MediaKind.RASTER, MediaKind.VECTOR)

    @property
    def filename(self) -> str:
        return self.absolute_path.name


@dataclass(frozen=True)
class ImageReference:
    """One image occurrence in a Markdown file."""
    target: str                  # as written in the source
    path: Optional[str]          # resolved root-relative path, None for URLs
    alt: str = ""
    title: str = ""
    standalone: bool = False     # enclosing paragraph holds only this image
    line: int = 0

    @property
    def is_external(self) -> bool:
        return self.path is None


@dataclass(frozen=True)
class TableReference:
    """A ``<!-- TABLE: path.csv -->`` marker."""
    target: str
    path: str
    line: int = 0


@dataclass(frozen=True)
class LinkReference:
    """A link to another part of the document (anchor or .md file)."""
    target: str
    file_path: Optional[str]     # resolved root-relative .md path, None for "#anchor"
    anchor: str = ""
    line: int = 0


@dataclass
class RawSection:
    """
    A heading and the block tokens up to the next top-level heading.

    ``events`` holds markdown-it block tokens (with inline children). Image
    tokens carry their ImageReference in ``token.meta["image_ref"]`` and
    TABLE markers carry theirs in ``token.meta["table_ref"]``.
    """
    number: SectionNumber
    heading_level: int
    heading_text: str
    heading_inline: Optional[Token] = None    # inline token of the heading itself
    events: List[Token] = field(default_factory=list)
    images: List[ImageReference] = field(default_factory=list)
    tables: List[TableReference] = field(default_factory=list)
    links: List[LinkReference] = field(default_factory=list)
    metadata: Optional[SectionMetadata] = None
    line: int = 0
    source_path: str = ""


@dataclass
class SourceFile:
    """A parsed Markdown file."""
    path: str                    # root-relative POSIX path
    absolute_path: Path
    number: SectionNumber
    title: str
    raw_text: str
    sections: List[RawSection] = field(default_factory=list)

    @property
    def images(self) -> List[ImageReference]:
        return [ref for s in self.sections for ref in s.images]

    @property
    def tables(self) -> List[TableReference]:
        return [ref for s in self.sections for ref in s.tables]


@dataclass(frozen=True)
class ParseError:
    """A structural problem found while loading one file."""
    file: str
    message: str
    line: int = 0

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}" if self.line else self.file
        return f"{location}: {self.message}"


@dataclass
class SourceSet:
    """Everything the loader found under a document root."""
    root: Path
    files: List[SourceFile] = field(default_factory=list)
    assets: Dict[str, MediaAsset] = field(default_factory=dict)
    folder_titles: Dict[Tuple[int, ...], str] = field(default_factory=dict)

    @property
    def sections(self) -> List[RawSection]:
        return [s for f in self.files for s in f.sections]

    def get_statistics(self) -> Dict[str, int]:
        """Get source statistics."""
        return {
            "files": len(self.files),
            "sections": len(self.sections),
            "images": sum(1 for a in self.assets.values() if a.is_image),
            "tables": sum(1 for a in self.assets.values() if a.kind is MediaKind.CSV),
        }
