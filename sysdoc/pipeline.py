"""
Compilation pipeline.

    load sources -> validate sources -> transform -> validate document -> export

Any structural error or unresolved reference aborts before an output file
is written. A configured DOCX template is opened before the sources are
read, so a broken template is reported first.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from config.constants import (
    DOCUMENT_CONFIG_FILE,
    DOCX_MAX_HEADING_LEVEL,
    MARKDOWN_MAX_HEADING_LEVEL,
)
from .document_config import DocumentConfig, load_document_config
from .errors import ExportError, ValidationFailed
from .export.base import BaseExporter, ExportFormat
from .export.docx_template_exporter import DocxTemplateExporter
from .export.html_exporter import HtmlExporter
from .export.markdown_exporter import MarkdownExporter
from .rendering.document_model import DocumentMetadata, UnifiedDocument
from .rendering.transformer import DocumentTransformer
from .source.loader import SourceLoader
from .source.models import SourceSet
from .validation.findings import Finding
from .validation.reference_validator import validate_document, validate_sources

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Outcome of a successful build."""
    output_path: Path
    document: UnifiedDocument
    warnings: List[str] = field(default_factory=list)


def load_config(root: Union[str, Path]) -> Optional[DocumentConfig]:
    """sysdoc.toml when present; None (with a warning) when absent."""
    path = Path(root) / DOCUMENT_CONFIG_FILE
    if not path.exists():
        logger.warning(f"No {DOCUMENT_CONFIG_FILE} in {root}; document metadata will be empty")
        return None
    return load_document_config(path)


def load_sources(
    root: Union[str, Path],
    workers: Optional[int] = None,
    show_progress: bool = False,
    exclude=(),
) -> SourceSet:
    return SourceLoader(workers=workers, show_progress=show_progress, exclude=exclude).load(root)


def validate(
    root: Union[str, Path],
    workers: Optional[int] = None,
    show_progress: bool = False,
) -> List[Finding]:
    """
    Check a document root without producing output.

    Raises:
        SourceLoadError: structural problems in the sources.
        ConfigError: sysdoc.toml exists but is invalid.

    Returns:
        Findings; an empty list means the document is consistent.
    """
    load_config(root)
    source_set = load_sources(root, workers, show_progress)
    return validate_sources(source_set)


def create_exporter(
    output_format: ExportFormat,
    template_path: Optional[Union[str, Path]] = None,
) -> BaseExporter:
    if DocxTemplateExporter.supports_format(output_format.value):
        return DocxTemplateExporter(template_path=template_path)
    if MarkdownExporter.supports_format(output_format.value):
        return MarkdownExporter()
    if HtmlExporter.supports_format(output_format.value):
        return HtmlExporter()
    raise ExportError(f"No exporter for format {output_format.value}")


def build(
    root: Union[str, Path],
    output_path: Union[str, Path],
    output_format: ExportFormat = ExportFormat.DOCX,
    template_path: Optional[Union[str, Path]] = None,
    workers: Optional[int] = None,
    show_progress: bool = False,
) -> BuildResult:
    """
    Compile a document root into output_path.

    Args:
        root: Document root directory.
        output_path: Target file (.docx, .md or .html).
        output_format: ExportFormat.DOCX, MARKDOWN or HTML.
        template_path: DOCX template; defaults to docx_template_path from
            sysdoc.toml.
        workers: Parser threads.
        show_progress: Show a progress bar while parsing.

    Raises:
        ConfigError, TemplateError, SourceLoadError, ValidationFailed
    """
    root = Path(root).resolve()
    output_path = Path(output_path).resolve()

    config = load_config(root)
    metadata = DocumentMetadata.from_config(config) if config else DocumentMetadata()
    if template_path is None and config is not None:
        template_path = config.template_path(root)

    exporter = create_exporter(output_format, template_path)

    exclude = []
    if output_path.parent != root and root in output_path.parents:
        exclude.append(output_path.parent)
    source_set = load_sources(root, workers, show_progress, exclude)

    findings = validate_sources(source_set)
    if findings:
        raise ValidationFailed(findings)

    max_level = DOCX_MAX_HEADING_LEVEL if output_format is ExportFormat.DOCX else MARKDOWN_MAX_HEADING_LEVEL
    document = DocumentTransformer(max_heading_level=max_level).transform(source_set, metadata)

    findings = validate_document(document)
    if findings:
        raise ValidationFailed(findings)

    exporter.export(document, output_path)
    warnings = document.warnings + exporter.warnings
    logger.info(f"Build complete: {output_path} ({len(warnings)} warning(s))")
    return BuildResult(output_path=output_path, document=document, warnings=warnings)
