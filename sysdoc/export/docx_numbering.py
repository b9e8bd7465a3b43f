"""
List numbering for the DOCX exporter.

Lists reuse the template's numbering definitions: the first abstract
definition whose level 0 is a bullet serves bullet lists and the first
decimal one serves ordered lists. When the template has no numbering part,
or lacks one of the two kinds, a simple built-in definition is added.

Every Markdown list gets its own ``w:num`` instance so numbering restarts
per list; ordered lists carry a ``startOverride`` with their start index.
"""

import logging
from typing import Dict, Optional

from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.packuri import PackURI
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls, qn
from docx.parts.numbering import NumberingPart

from config.constants import LIST_INDENT_TWIPS

logger = logging.getLogger(__name__)

_BULLETS = ['•', '◦', '▪']
_LEVELS = 9


def _level_xml(ilvl: int, ordered: bool) -> str:
    indent = LIST_INDENT_TWIPS * (ilvl + 1)
    if ordered:
        fmt, text = 'decimal', f'%{ilvl + 1}.'
    else:
        fmt, text = 'bullet', _BULLETS[ilvl % len(_BULLETS)]
    return (
        f'<w:lvl w:ilvl="{ilvl}">'
        f'<w:start w:val="1"/>'
        f'<w:numFmt w:val="{fmt}"/>'
        f'<w:lvlText w:val="{text}"/>'
        f'<w:lvlJc w:val="left"/>'
        f'<w:pPr><w:ind w:left="{indent}" w:hanging="360"/></w:pPr>'
        f'</w:lvl>'
    )


def abstract_num_xml(abstract_id: int, ordered: bool) -> str:
    levels = ''.join(_level_xml(i, ordered) for i in range(_LEVELS))
    return (
        f'<w:abstractNum {nsdecls("w")} w:abstractNumId="{abstract_id}">'
        f'<w:multiLevelType w:val="hybridMultilevel"/>'
        f'{levels}'
        f'</w:abstractNum>'
    )


class DocxNumbering:
    """
    Allocates numbering instances for lists.

    Usage:
        numbering = DocxNumbering(doc)
        num_id = numbering.new_list(ordered=True, start=3)
        numbering.apply(paragraph, num_id, level=0)
    """

    def __init__(self, document):
        self.document = document
        self.part = self._numbering_part()
        self.element = self.part.element
        self._abstract_ids: Dict[bool, int] = {}
        for ordered in (False, True):
            self._abstract_ids[ordered] = self._find_abstract(ordered)

    def new_list(self, ordered: bool, start: Optional[int] = None, level: int = 0) -> int:
        """Create a w:num for one list and return its numId."""
        num = self.element.add_num(self._abstract_ids[ordered])
        if ordered and start is not None:
            override = num.add_lvlOverride(ilvl=level)
            override.add_startOverride(start)
        return num.numId

    @staticmethod
    def apply(paragraph, num_id: int, level: int) -> None:
        """Attach numbering (numId, ilvl) to a paragraph."""
        num_pr = paragraph._p.get_or_add_pPr().get_or_add_numPr()
        num_pr.get_or_add_ilvl().val = min(level, _LEVELS - 1)
        num_pr.get_or_add_numId().val = num_id

    # ------------------------------------------------------------------

    def _numbering_part(self) -> NumberingPart:
        document_part = self.document.part
        try:
            return document_part.part_related_by(RT.NUMBERING)
        except KeyError:
            pass
        logger.debug("Template has no numbering part; adding built-in definitions")
        element = parse_xml(f'<w:numbering {nsdecls("w")}/>')
        part = NumberingPart(
            PackURI('/word/numbering.xml'),
            CT.WML_NUMBERING,
            element,
            document_part.package,
        )
        document_part.relate_to(part, RT.NUMBERING)
        return part

    def _find_abstract(self, ordered: bool) -> int:
        wanted = 'decimal' if ordered else 'bullet'
        abstracts = self.element.findall(qn('w:abstractNum'))
        for abstract in abstracts:
            level0 = next(
                (lvl for lvl in abstract.findall(qn('w:lvl')) if lvl.get(qn('w:ilvl')) == '0'),
                None,
            )
            if level0 is None:
                continue
            fmt = level0.find(qn('w:numFmt'))
            if fmt is not None and fmt.get(qn('w:val')) == wanted:
                return int(abstract.get(qn('w:abstractNumId')))

        used = [int(a.get(qn('w:abstractNumId'))) for a in abstracts]
        abstract_id = max(used, default=-1) + 1
        abstract = parse_xml(abstract_num_xml(abstract_id, ordered))
        # abstractNum elements must precede every w:num
        first_num = self.element.find(qn('w:num'))
        if first_num is not None:
            first_num.addprevious(abstract)
        else:
            self.element.append(abstract)
        logger.debug(f"Added built-in {wanted} numbering as abstractNum {abstract_id}")
        return abstract_id
