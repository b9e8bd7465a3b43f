"""
Reference Validator - checks that every image, CSV table and internal link
resolves to something that exists.

Works on either side of the transformer:

    findings = validate_sources(source_set)     # before transform
    findings = validate_document(document)      # after transform

Every problem is reported; validation never stops at the first finding.
An empty list means the document is consistent.
"""

import logging
import posixpath
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import unquote

from ..anchors import heading_to_anchor, section_anchors
from ..rendering.document_model import (
    Block,
    BlockType,
    DocumentSection,
    Inline,
    InlineImage,
    TextRun,
    UnifiedDocument,
)
from ..source.markdown_parser import is_external, resolve_path
from ..source.models import MediaKind, SourceSet
from .findings import Finding, FindingKind

logger = logging.getLogger(__name__)


class ReferenceValidator:
    """
    Accumulating reference checker.

    Usage:
        validator = ReferenceValidator()
        findings = validator.validate_sources(source_set)
        if findings:
            for finding in findings:
                print(finding)
    """

    def validate_sources(self, source_set: SourceSet) -> List[Finding]:
        findings: List[Finding] = []
        anchors_by_file: Dict[str, Set[str]] = {}
        for source_file in source_set.files:
            anchors = anchors_by_file.setdefault(source_file.path, set())
            for section in source_file.sections:
                section_id = section.metadata.section_id if section.metadata else None
                anchors |= section_anchors(section.number, section.heading_text, section_id)
        all_anchors = set().union(*anchors_by_file.values()) if anchors_by_file else set()

        for source_file in source_set.files:
            for section in source_file.sections:
                for image in section.images:
                    if image.is_external:
                        continue
                    asset = source_set.assets.get(image.path)
                    if asset is None or not asset.is_image:
                        findings.append(Finding(
                            source_file.path, image.target, FindingKind.MISSING_IMAGE, image.line
                        ))
                for table in section.tables:
                    asset = source_set.assets.get(table.path)
                    if asset is None or asset.kind is not MediaKind.CSV:
                        findings.append(Finding(
                            source_file.path, table.target, FindingKind.MISSING_TABLE, table.line
                        ))
                for link in section.links:
                    if not self._link_resolves(link.file_path, link.anchor, anchors_by_file, all_anchors):
                        findings.append(Finding(
                            source_file.path, link.target, FindingKind.BROKEN_LINK, link.line
                        ))

        self._log(findings)
        return findings

    def validate_document(self, document: UnifiedDocument) -> List[Finding]:
        findings: List[Finding] = []
        anchors_by_file = {path: set(anchors) for path, anchors in document.file_anchors.items()}
        all_anchors = set().union(*anchors_by_file.values()) if anchors_by_file else set()
        known_files = set(anchors_by_file)

        for section in document.walk():
            if section.source_path is None:
                continue
            context = _SectionContext(section, known_files)
            self._check_runs(section.heading_runs, context, findings, anchors_by_file, all_anchors)
            for block in section.blocks:
                self._check_block(block, context, findings, anchors_by_file, all_anchors)

        self._log(findings)
        return findings

    # ------------------------------------------------------------------

    def _check_block(self, block: Block, context: "_SectionContext", findings, anchors_by_file, all_anchors):
        kind = block.block_type
        if kind == BlockType.IMAGE:
            if block.path is not None and block.asset is None:
                findings.append(Finding(context.file, block.target, FindingKind.MISSING_IMAGE))
        elif kind == BlockType.CSV_TABLE:
            if block.asset is None:
                findings.append(Finding(context.file, block.target, FindingKind.MISSING_TABLE))
        elif kind in (BlockType.PARAGRAPH, BlockType.HEADING):
            self._check_runs(block.runs, context, findings, anchors_by_file, all_anchors)
        elif kind == BlockType.BLOCKQUOTE:
            for inner in block.blocks:
                self._check_block(inner, context, findings, anchors_by_file, all_anchors)
        elif kind == BlockType.LIST:
            for item in block.items:
                for inner in item:
                    self._check_block(inner, context, findings, anchors_by_file, all_anchors)
        elif kind == BlockType.TABLE:
            for row in [block.header] + block.rows:
                for cell in row:
                    self._check_runs(cell, context, findings, anchors_by_file, all_anchors)

    def _check_runs(self, runs: Iterable[Inline], context, findings, anchors_by_file, all_anchors):
        last_link = None
        for run in runs:
            if isinstance(run, InlineImage):
                if run.path is not None and run.asset is None:
                    findings.append(Finding(context.file, run.target, FindingKind.MISSING_IMAGE))
            elif isinstance(run, TextRun) and run.link and run.link != last_link:
                # consecutive runs of one link share the href
                last_link = run.link
                target_file, anchor = context.resolve_link(run.link)
                if target_file is False:
                    continue
                if not self._link_resolves(target_file, anchor, anchors_by_file, all_anchors):
                    findings.append(Finding(context.file, run.link, FindingKind.BROKEN_LINK))
            elif isinstance(run, TextRun):
                last_link = run.link

    @staticmethod
    def _link_resolves(
        file_path: Optional[str],
        anchor: str,
        anchors_by_file: Dict[str, Set[str]],
        all_anchors: Set[str],
    ) -> bool:
        slug = heading_to_anchor(anchor) if anchor else ''
        if file_path is None:
            return bool(slug) and slug in all_anchors
        if file_path not in anchors_by_file:
            return False
        return not slug or slug in anchors_by_file[file_path]

    @staticmethod
    def _log(findings: List[Finding]) -> None:
        for finding in findings:
            logger.warning(f"Unresolved reference: {finding}")
        if findings:
            logger.info(f"Validation found {len(findings)} problem(s)")


class _SectionContext:
    """Resolves links relative to the file a section came from."""

    def __init__(self, section: DocumentSection, known_files: Set[str]):
        self.file = section.source_path
        self.base_dir = posixpath.dirname(section.source_path)
        self.known_files = known_files

    def resolve_link(self, href: str):
        """
        Returns (file_path, anchor); file_path is None for "#anchor" links
        and False for links the validator does not check.
        """
        if is_external(href):
            return False, ''
        if href.startswith('#'):
            return None, unquote(href[1:])
        path_part, _, anchor = href.partition('#')
        if not path_part.lower().endswith(('.md', '.markdown')):
            return False, ''
        return resolve_path(path_part, self.base_dir, self.known_files), unquote(anchor)


def validate_sources(source_set: SourceSet) -> List[Finding]:
    """Check every reference in a loaded source set."""
    return ReferenceValidator().validate_sources(source_set)


def validate_document(document: UnifiedDocument) -> List[Finding]:
    """Check every reference in a transformed document."""
    return ReferenceValidator().validate_document(document)
