"""
Source loading: discovery, section numbering and Markdown parsing.
"""

from .section_number import SectionNumber, split_filename
from .models import (
    MediaKind,
    MediaAsset,
    ImageReference,
    TableReference,
    LinkReference,
    RawSection,
    SourceFile,
    ParseError,
    SourceSet,
)
from .metadata import SectionMetadata
from .loader import SourceLoader

__all__ = [
    'SectionNumber',
    'split_filename',
    'MediaKind',
    'MediaAsset',
    'ImageReference',
    'TableReference',
    'LinkReference',
    'RawSection',
    'SourceFile',
    'ParseError',
    'SourceSet',
    'SectionMetadata',
    'SourceLoader',
]
