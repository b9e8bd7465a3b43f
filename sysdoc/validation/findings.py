"""
Validation findings.
"""

from dataclasses import dataclass
from enum import Enum


class FindingKind(Enum):
    """What kind of reference failed to resolve."""
    MISSING_IMAGE = "missing_image"
    MISSING_TABLE = "missing_table"
    BROKEN_LINK = "broken_link"


@dataclass(frozen=True)
class Finding:
    """One unresolved reference: (kind, referencing file, target as written)."""
    file: str
    target: str
    kind: FindingKind
    line: int = 0

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}" if self.line else self.file
        return f"{location}: {self.kind.value} {self.target}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "file": self.file,
            "target": self.target,
            "line": self.line,
        }
