"""
Anchor slugs for headings, GitHub style:

    "1.2 System Overview"  ->  "12-system-overview"
    "System Overview"      ->  "system-overview"
"""

import re
from typing import Iterable, Optional, Set


def heading_to_anchor(text: str) -> str:
    """Convert heading text to anchor slug."""
    anchor = text.lower().strip()
    anchor = re.sub(r'\s+', '-', anchor)
    anchor = re.sub(r'[^\w\-\u00C0-\u024F\u1E00-\u1EFF]', '', anchor)
    anchor = re.sub(r'-+', '-', anchor)
    return anchor.strip('-')


def section_anchors(number, title: str, section_id: Optional[str] = None) -> Set[str]:
    """All anchors a link may use to reach a section."""
    anchors = {heading_to_anchor(f"{number} {title}")}
    if title:
        anchors.add(heading_to_anchor(title))
    if section_id:
        anchors.add(heading_to_anchor(section_id))
    anchors.discard('')
    return anchors


def anchor_matches(anchor: str, known: Iterable[str]) -> bool:
    return heading_to_anchor(anchor) in set(known)
