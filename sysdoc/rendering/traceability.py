"""
Traceability tables built from ``sysdoc`` section metadata.

Two views are available to any section that asks for them:

    section_id -> traced_ids   (rows sorted by section_id, ids sorted)
    traced_id  -> section_ids  (one row per traced id, ids sorted)
"""

from typing import Dict, List, Tuple

from ..source.metadata import SectionMetadata
from ..source.models import RawSection
from .document_model import Alignment, Table, TextRun


class TraceabilityIndex:
    """Collects section_id/traced_ids pairs across the whole document."""

    def __init__(self, section_to_traced: List[Tuple[str, List[str]]]):
        self.section_to_traced = sorted(section_to_traced, key=lambda pair: pair[0])
        self.traced_to_sections: Dict[str, List[str]] = {}
        for section_id, traced_ids in self.section_to_traced:
            for traced_id in traced_ids:
                self.traced_to_sections.setdefault(traced_id, []).append(section_id)
        for section_ids in self.traced_to_sections.values():
            section_ids.sort()

    @classmethod
    def from_sections(cls, sections: List[RawSection]) -> "TraceabilityIndex":
        pairs = [
            (s.metadata.section_id, list(s.metadata.traced_ids))
            for s in sections
            if s.metadata is not None and s.metadata.section_id
        ]
        return cls(pairs)

    def section_table(self, headers: Tuple[str, str]) -> Table:
        rows = [
            (section_id, ', '.join(sorted(traced)))
            for section_id, traced in self.section_to_traced
        ]
        return _table(headers, rows)

    def traced_table(self, headers: Tuple[str, str]) -> Table:
        rows = [
            (traced_id, ', '.join(section_ids))
            for traced_id, section_ids in sorted(self.traced_to_sections.items())
        ]
        return _table(headers, rows)

    def tables_for(self, metadata: SectionMetadata) -> List[Table]:
        """Tables requested by one section, in declaration order."""
        tables = []
        if metadata.generate_section_id_to_traced_ids_table:
            tables.append(self.section_table(metadata.generate_section_id_to_traced_ids_table))
        if metadata.generate_traced_ids_to_section_ids_table:
            tables.append(self.traced_table(metadata.generate_traced_ids_to_section_ids_table))
        return tables


def _table(headers: Tuple[str, str], rows: List[Tuple[str, str]]) -> Table:
    return Table(
        alignments=[Alignment.NONE, Alignment.NONE],
        header=[[TextRun(headers[0])], [TextRun(headers[1])]],
        rows=[[[TextRun(left)], [TextRun(right)]] for left, right in rows],
    )
