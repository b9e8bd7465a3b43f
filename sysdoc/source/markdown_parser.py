"""
Markdown file parser.

Splits one Markdown file into RawSections at its top-level headings and
records every image, table marker and internal link it references. The
markdown-it token stream is kept as-is (the "raw events"); turning it into
content blocks is the transformer's job.

Section numbers inside a file follow the heading structure:

    01.02_overview.md
        # Overview          -> 1.2
        ## Scope            -> 1.2.1
        ### Details         -> 1.2.1.1
        ## Context          -> 1.2.2

Image classification: markdown-it wraps every image in a paragraph. Once a
paragraph's inline content is complete, the parser checks whether the
image is the paragraph's only content and stores the answer on the
ImageReference (``standalone``) for the transformer.
"""

import logging
import posixpath
import re
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.token import Token

from config.constants import SOURCE_HEADING_LEVELS
from .metadata import parse_section_metadata
from .models import (
    ImageReference,
    LinkReference,
    ParseError,
    RawSection,
    TableReference,
)
from .section_number import SectionNumber

logger = logging.getLogger(__name__)

TABLE_MARKER_RE = re.compile(r'<!--\s*TABLE:\s*(.+?)\s*-->', re.IGNORECASE)
_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*:')

# Language tags for include_file code blocks
_INCLUDE_LANGUAGES = {
    '.py': 'python', '.rs': 'rust', '.c': 'c', '.h': 'c', '.cpp': 'cpp',
    '.js': 'javascript', '.ts': 'typescript', '.sh': 'bash', '.toml': 'toml',
    '.json': 'json', '.yaml': 'yaml', '.yml': 'yaml', '.xml': 'xml',
}


def create_markdown_parser() -> MarkdownIt:
    """CommonMark plus GitHub tables and strikethrough."""
    return MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])


def is_external(target: str) -> bool:
    return bool(_SCHEME_RE.match(target)) or target.startswith('//')


def resolve_path(target: str, base_dir: str, known: Iterable[str]) -> str:
    """
    Resolve a relative reference to a root-relative POSIX path.

    The referencing file's directory is tried first, then the document
    root. When neither exists the file-relative candidate is returned so
    reports name the place the author most likely meant.
    """
    clean = unquote(target.split('#', 1)[0].split('?', 1)[0]).strip()
    if clean.startswith('/'):
        candidates = [posixpath.normpath(clean.lstrip('/'))]
    else:
        candidates = [
            posixpath.normpath(posixpath.join(base_dir, clean)),
            posixpath.normpath(clean),
        ]
    for candidate in candidates:
        if candidate in known:
            return candidate
    return candidates[0]


def plain_text(children: Optional[List[Token]]) -> str:
    """Concatenate the visible text of inline tokens."""
    parts = []
    for child in children or []:
        if child.type in ('text', 'code_inline'):
            parts.append(child.content)
        elif child.type in ('softbreak', 'hardbreak'):
            parts.append(' ')
        elif child.type == 'image':
            parts.append(plain_text(child.children))
    return ''.join(parts)


def is_image_only(inline: Token) -> bool:
    """True when a paragraph's inline content is exactly one image."""
    meaningful = [
        child for child in inline.children or []
        if not (
            child.type == 'softbreak'
            or (child.type == 'text' and not child.content.strip())
        )
    ]
    return len(meaningful) == 1 and meaningful[0].type == 'image'


class MarkdownFileParser:
    """
    Parses a single Markdown file into RawSections.

    Usage:
        parser = MarkdownFileParser(root, known_paths)
        title, sections, errors = parser.parse(text, "01.02_overview.md", number, "Overview")
    """

    def __init__(self, root: Path, known_paths: Set[str]):
        self.root = root
        self.known_paths = known_paths

    def parse(
        self,
        text: str,
        rel_path: str,
        number: SectionNumber,
        default_title: str,
    ) -> Tuple[str, List[RawSection], List[ParseError]]:
        """
        Parse file content.

        Args:
            text: Markdown source.
            rel_path: Root-relative path of the file (used in reports).
            number: SectionNumber from the filename.
            default_title: Filename-derived title, used when the file has
                no level-1 heading.

        Returns:
            (title, sections, errors)
        """
        base_dir = posixpath.dirname(rel_path)
        errors: List[ParseError] = []
        sections: List[RawSection] = []
        counters = [0] * SOURCE_HEADING_LEVELS
        seen_h1 = False
        title = default_title

        current = RawSection(
            number=number, heading_level=1, heading_text=default_title,
            line=1, source_path=rel_path,
        )
        tokens = create_markdown_parser().parse(text)
        line = 1
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.map:
                line = token.map[0] + 1

            if token.type == 'heading_open' and token.level == 0:
                level = int(token.tag[1:])
                heading_text = plain_text(tokens[i + 1].children).strip()
                if level == 1:
                    if seen_h1:
                        errors.append(ParseError(rel_path, "multiple level-1 headings", line))
                    elif sections:
                        errors.append(ParseError(
                            rel_path, "level-1 heading must precede all other headings", line
                        ))
                    else:
                        seen_h1 = True
                        title = heading_text
                        current.heading_text = heading_text
                        current.line = line
                else:
                    index = min(level, SOURCE_HEADING_LEVELS) - 1
                    counters[index] += 1
                    for deeper in range(index + 1, SOURCE_HEADING_LEVELS):
                        counters[deeper] = 0
                    self._close_section(current, base_dir, errors)
                    sections.append(current)
                    current = RawSection(
                        number=number.extend(*counters[1:index + 1]),
                        heading_level=level,
                        heading_text=heading_text,
                        line=line,
                        source_path=rel_path,
                    )
                if current.heading_inline is None:
                    current.heading_inline = tokens[i + 1]
                    self._record_references(tokens, i + 1, current, base_dir, line)
                # heading_open, inline, heading_close
                i += 3
                continue

            if token.type == 'fence' and token.level == 0 and token.info.strip() == 'sysdoc':
                if current.metadata is not None:
                    errors.append(ParseError(rel_path, "more than one sysdoc block in section", line))
                else:
                    try:
                        current.metadata = parse_section_metadata(token.content)
                    except ValueError as e:
                        errors.append(ParseError(rel_path, str(e), line))
                i += 1
                continue

            self._record_references(tokens, i, current, base_dir, line)
            current.events.append(token)
            i += 1

        self._close_section(current, base_dir, errors)
        sections.append(current)
        return title, sections, errors

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _record_references(
        self,
        tokens: List[Token],
        index: int,
        section: RawSection,
        base_dir: str,
        line: int,
    ) -> None:
        token = tokens[index]

        if token.type == 'html_block':
            match = TABLE_MARKER_RE.search(token.content)
            if match:
                target = match.group(1)
                ref = TableReference(
                    target=target,
                    path=resolve_path(target, base_dir, self.known_paths),
                    line=line,
                )
                token.meta['table_ref'] = ref
                section.tables.append(ref)
            return

        if token.type != 'inline':
            return

        in_paragraph = index > 0 and tokens[index - 1].type == 'paragraph_open'
        standalone = in_paragraph and is_image_only(token)

        for child in token.children or []:
            if child.type == 'image':
                target = child.attrGet('src') or ''
                ref = ImageReference(
                    target=target,
                    path=None if is_external(target) else resolve_path(
                        target, base_dir, self.known_paths
                    ),
                    alt=plain_text(child.children),
                    title=child.attrGet('title') or '',
                    standalone=standalone,
                    line=line,
                )
                child.meta['image_ref'] = ref
                section.images.append(ref)
            elif child.type == 'link_open':
                link = self._link_reference(child.attrGet('href') or '', base_dir, line)
                if link is not None:
                    section.links.append(link)

    def _link_reference(self, href: str, base_dir: str, line: int) -> Optional[LinkReference]:
        if not href or is_external(href):
            return None
        if href.startswith('#'):
            return LinkReference(target=href, file_path=None, anchor=unquote(href[1:]), line=line)
        path_part, _, anchor = href.partition('#')
        if not path_part.lower().endswith(('.md', '.markdown')):
            return None
        return LinkReference(
            target=href,
            file_path=resolve_path(path_part, base_dir, self.known_paths),
            anchor=unquote(anchor),
            line=line,
        )

    # ------------------------------------------------------------------
    # include_file
    # ------------------------------------------------------------------

    def _close_section(self, section: RawSection, base_dir: str, errors: List[ParseError]) -> None:
        metadata = section.metadata
        if metadata is None or not metadata.include_file:
            return
        rel = resolve_path(metadata.include_file, base_dir, self.known_paths)
        candidates = [self.root / rel, self.root / metadata.include_file]
        source = next((p for p in candidates if p.is_file()), None)
        if source is None:
            errors.append(ParseError(
                section.source_path, f"include_file not found: {metadata.include_file}", section.line
            ))
            return
        try:
            content = source.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            errors.append(ParseError(section.source_path, f"cannot read include_file: {e}", section.line))
            return

        fence = Token('fence', 'code', 0)
        fence.info = _INCLUDE_LANGUAGES.get(source.suffix.lower(), source.suffix.lstrip('.'))
        fence.content = content if content.endswith('\n') else content + '\n'
        fence.markup = '```'
        fence.block = True
        section.events.append(fence)
        logger.debug(f"Included {source.name} into section {section.number}")
