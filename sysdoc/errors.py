"""
Exception types raised by the compiler.

Structural problems (bad numbering, unreadable files, invalid configuration)
and reference problems (missing media, broken links) are collected and
raised together so an author can fix everything in one pass.
"""

from typing import TYPE_CHECKING, List, Sequence

if TYPE_CHECKING:
    from .source.models import ParseError
    from .validation.findings import Finding


class SysdocError(Exception):
    """Base class for all compiler errors."""


class ConfigError(SysdocError):
    """sysdoc.toml is missing, unreadable or fails validation."""


class SourceLoadError(SysdocError):
    """One or more source files failed to load."""

    def __init__(self, errors: Sequence["ParseError"]):
        self.errors: List["ParseError"] = list(errors)
        lines = "\n".join(f"  - {err}" for err in self.errors)
        super().__init__(f"{len(self.errors)} source error(s):\n{lines}")


class ValidationFailed(SysdocError):
    """Reference validation produced findings; no output was written."""

    def __init__(self, findings: Sequence["Finding"]):
        self.findings = list(findings)
        lines = "\n".join(f"  - {finding}" for finding in self.findings)
        super().__init__(f"{len(self.findings)} unresolved reference(s):\n{lines}")


class StructuralError(SysdocError):
    """The transformer received input it cannot place in the section tree."""


class TemplateError(SysdocError):
    """The DOCX template package is missing or cannot be opened."""


class ExportError(SysdocError):
    """Writing the output artifact failed."""


