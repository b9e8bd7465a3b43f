"""
SectionNumber - numeric section identifiers parsed from filename prefixes.

    01.02_system-overview.md  ->  SectionNumber((1, 2))
    03.00_design.md           ->  SectionNumber((3,))   (".00" marks a parent)

Ordering compares the integer components lexicographically, so 1.10 sorts
after 1.9 and 1 sorts before 1.1.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple


_COMPONENT_RE = re.compile(r'^\d+$')


@dataclass(frozen=True, order=True)
class SectionNumber:
    """Ordered sequence of non-negative integers."""
    parts: Tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> Optional["SectionNumber"]:
        """
        Parse a dotted prefix such as "01.02" or "3.1.4".

        A trailing zero component (the "01.00" parent marker) is dropped.
        Returns None when any component is not a plain decimal number.
        """
        if not text:
            return None
        components = text.split('.')
        if not all(_COMPONENT_RE.match(c) for c in components):
            return None
        parts = [int(c) for c in components]
        if len(parts) > 1 and parts[-1] == 0:
            parts = parts[:-1]
        return cls(tuple(parts))

    @property
    def depth(self) -> int:
        return len(self.parts)

    def is_prefix_of(self, other: "SectionNumber") -> bool:
        """True when self is a proper prefix of other (other is a descendant)."""
        return (
            len(self.parts) < len(other.parts)
            and other.parts[:len(self.parts)] == self.parts
        )

    def extend(self, *components: int) -> "SectionNumber":
        return SectionNumber(self.parts + tuple(components))

    def top_level(self) -> "SectionNumber":
        return SectionNumber(self.parts[:1])

    def __str__(self) -> str:
        return '.'.join(str(p) for p in self.parts)


def split_filename(stem: str) -> Tuple[Optional[SectionNumber], str]:
    """
    Split a file stem into its section number and a display title.

    The stem is split on the first underscore; the remainder becomes the
    title with dashes/underscores turned into spaces and each word
    capitalised ("system-overview" -> "System Overview").
    """
    prefix, _, slug = stem.partition('_')
    number = SectionNumber.parse(prefix)
    return number, title_from_slug(slug)


def title_from_slug(slug: str) -> str:
    words = re.split(r'[-_\s]+', slug.strip())
    return ' '.join(w[:1].upper() + w[1:] for w in words if w)


def split_folder_name(name: str) -> Tuple[Optional[SectionNumber], str]:
    """
    Folders use "01-introduction" or "01_introduction"; the numeric prefix
    only names implied parent sections, it never changes numbering.
    """
    match = re.match(r'^(\d+(?:\.\d+)*)[-_ ]?(.*)$', name)
    if not match:
        return None, ''
    return SectionNumber.parse(match.group(1)), title_from_slug(match.group(2))
