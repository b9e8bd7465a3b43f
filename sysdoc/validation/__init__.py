"""
Reference validation.
"""

from .findings import Finding, FindingKind
from .reference_validator import ReferenceValidator, validate_sources, validate_document

__all__ = [
    'Finding',
    'FindingKind',
    'ReferenceValidator',
    'validate_sources',
    'validate_document',
]
