"""
Link targets for sections.

Every section gets a stable target name derived from its number
("sec_1_2_3"). DOCX uses it as the heading bookmark, HTML as the heading
id. Internal links written as "#anchor", "file.md" or "file.md#anchor"
resolve to one of those names.
"""

import posixpath
from typing import Dict, Optional
from urllib.parse import unquote

from ..anchors import heading_to_anchor, section_anchors
from ..rendering.document_model import DocumentSection, UnifiedDocument
from ..source.markdown_parser import is_external, resolve_path

# Word limits bookmark names to 40 characters
MAX_TARGET_LENGTH = 40


def target_name(section: DocumentSection) -> str:
    return f"sec_{'_'.join(str(part) for part in section.number.parts)}"[:MAX_TARGET_LENGTH]


class SectionTargets:
    """
    Anchor and file lookup for one document.

    Usage:
        targets = SectionTargets(document)
        name = targets.resolve("02_design.md#interfaces", "01_intro.md")
    """

    def __init__(self, document: UnifiedDocument):
        self.by_anchor: Dict[str, str] = {}
        self.by_file: Dict[str, Dict[str, str]] = {}
        self.file_start: Dict[str, str] = {}

        for section in document.walk():
            name = target_name(section)
            anchors = sorted(section_anchors(section.number, section.title, section.section_id))
            for anchor in anchors:
                self.by_anchor.setdefault(anchor, name)
            if section.source_path is None:
                continue
            self.file_start.setdefault(section.source_path, name)
            file_anchors = self.by_file.setdefault(section.source_path, {})
            for anchor in anchors:
                file_anchors.setdefault(anchor, name)

    def resolve(self, href: str, source_path: Optional[str]) -> Optional[str]:
        """Target name for an internal link; None for anything else."""
        if not href or is_external(href):
            return None
        if href.startswith('#'):
            return self.by_anchor.get(heading_to_anchor(unquote(href[1:])))

        path_part, _, anchor = href.partition('#')
        if not path_part.lower().endswith(('.md', '.markdown')):
            return None
        file_path = resolve_path(path_part, posixpath.dirname(source_path or ''), self.file_start)
        if not anchor:
            return self.file_start.get(file_path)
        return self.by_file.get(file_path, {}).get(heading_to_anchor(unquote(anchor)))
