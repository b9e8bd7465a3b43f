"""
sysdoc - compiles a directory of numbered Markdown, image and CSV files
into a DOCX package, an aggregated Markdown bundle or an HTML page.

Usage:
    from sysdoc import build, validate, ExportFormat

    findings = validate("docs/")
    result = build("docs/", "build/SDD-001.docx")
"""

__version__ = "0.3.0"

from .errors import (
    SysdocError,
    ConfigError,
    SourceLoadError,
    ValidationFailed,
    StructuralError,
    TemplateError,
    ExportError,
)
from .export.base import ExportFormat
from .pipeline import build, validate, BuildResult

__all__ = [
    'SysdocError',
    'ConfigError',
    'SourceLoadError',
    'ValidationFailed',
    'StructuralError',
    'TemplateError',
    'ExportError',
    'ExportFormat',
    'build',
    'validate',
    'BuildResult',
]
