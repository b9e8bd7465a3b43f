"""
Source Loader - discovers and parses every file under a document root.

    loader = SourceLoader()
    source_set = loader.load("docs/")      # raises SourceLoadError

Markdown files are parsed in parallel; results are re-sorted by section
number afterwards, so worker scheduling never affects output order. All
structural problems across all files are collected and raised together.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from config.constants import (
    MARKDOWN_EXTENSIONS,
    RASTER_EXTENSIONS,
    VECTOR_EXTENSIONS,
    TABLE_EXTENSIONS,
)
from config.settings import settings
from ..errors import SourceLoadError
from .markdown_parser import MarkdownFileParser
from .models import MediaAsset, MediaKind, ParseError, SourceFile, SourceSet
from .section_number import SectionNumber, split_filename, split_folder_name

logger = logging.getLogger(__name__)


def media_kind(path: Path) -> Optional[MediaKind]:
    """Classify a file by extension; None for files the compiler ignores."""
    suffix = path.suffix.lower()
    if suffix in RASTER_EXTENSIONS:
        return MediaKind.RASTER
    if suffix in VECTOR_EXTENSIONS:
        return MediaKind.VECTOR
    if suffix in TABLE_EXTENSIONS:
        return MediaKind.CSV
    return None


class SourceLoader:
    """
    Builds a SourceSet from a document root.

    Args:
        workers: Parser threads (defaults to settings.parse_workers).
        show_progress: Show a tqdm progress bar while parsing.
        exclude: Directories (absolute or root-relative) to skip, e.g. the
            output directory when it lives inside the root.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        show_progress: bool = False,
        exclude: Iterable[Path] = (),
    ):
        self.workers = max(1, workers or settings.parse_workers)
        self.show_progress = show_progress
        self.exclude = list(exclude)

    def load(self, root) -> SourceSet:
        root = Path(root).resolve()
        if not root.is_dir():
            raise SourceLoadError([ParseError(str(root), "document root is not a directory")])

        markdown_paths, assets, folder_titles = self._discover(root)
        known: Set[str] = set(assets) | {self._relative(p, root) for p in markdown_paths}
        errors: List[ParseError] = []

        jobs: List[Tuple[Path, str, SectionNumber, str]] = []
        for path in markdown_paths:
            rel = self._relative(path, root)
            stem = path.name[: -len(path.suffix)]
            number, title = split_filename(stem)
            if number is None:
                if stem[:1].isdigit():
                    errors.append(ParseError(rel, f"unparsable section number prefix: '{stem.partition('_')[0]}'"))
                else:
                    logger.debug(f"Skipping {rel}: no section number prefix")
                continue
            jobs.append((path, rel, number, title))

        parser = MarkdownFileParser(root, known)
        files: List[SourceFile] = []
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            results = executor.map(lambda job: self._parse_file(parser, *job), jobs)
            for source_file, file_errors in tqdm(
                results, total=len(jobs), desc="Parsing", unit="file",
                disable=not self.show_progress,
            ):
                errors.extend(file_errors)
                if source_file is not None:
                    files.append(source_file)

        # Canonical order, independent of worker completion order
        files.sort(key=lambda f: (f.number, f.path))
        errors.extend(self._check_duplicates(files))

        if errors:
            errors.sort(key=lambda e: (e.file, e.line, e.message))
            for error in errors:
                logger.error(str(error))
            raise SourceLoadError(errors)

        source_set = SourceSet(root=root, files=files, assets=assets, folder_titles=folder_titles)
        logger.info(f"Loaded {root}: {source_set.get_statistics()}")
        return source_set

    # ------------------------------------------------------------------

    def _discover(self, root: Path) -> Tuple[List[Path], Dict[str, MediaAsset], Dict[Tuple[int, ...], str]]:
        excluded = {(p if Path(p).is_absolute() else root / p).resolve() for p in self.exclude}
        markdown: List[Path] = []
        assets: Dict[str, MediaAsset] = {}
        folder_titles: Dict[Tuple[int, ...], str] = {}

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith('.') and (current / d).resolve() not in excluded
            )
            for name in dirnames:
                number, title = split_folder_name(name)
                if number is not None and title:
                    folder_titles.setdefault(number.parts, title)

            for name in sorted(filenames):
                if name.startswith('.'):
                    continue
                path = current / name
                if path.suffix.lower() in MARKDOWN_EXTENSIONS:
                    markdown.append(path)
                    continue
                kind = media_kind(path)
                if kind is not None:
                    rel = self._relative(path, root)
                    assets[rel] = MediaAsset(path=rel, absolute_path=path.resolve(), kind=kind)

        return markdown, assets, folder_titles

    @staticmethod
    def _parse_file(
        parser: MarkdownFileParser,
        path: Path,
        rel: str,
        number: SectionNumber,
        default_title: str,
    ) -> Tuple[Optional[SourceFile], List[ParseError]]:
        try:
            text = path.read_bytes().decode('utf-8-sig')
        except UnicodeDecodeError as e:
            return None, [ParseError(rel, f"not valid UTF-8 ({e.reason} at byte {e.start})")]
        except OSError as e:
            return None, [ParseError(rel, f"cannot read file: {e.strerror or e}")]

        title, sections, errors = parser.parse(text, rel, number, default_title)
        logger.debug(f"Parsed {rel}: {len(sections)} section(s)")
        return SourceFile(
            path=rel,
            absolute_path=path.resolve(),
            number=number,
            title=title,
            raw_text=text,
            sections=sections,
        ), errors

    @staticmethod
    def _check_duplicates(files: List[SourceFile]) -> List[ParseError]:
        """Every section number must be unique across the whole tree."""
        errors = []
        owners: Dict[SectionNumber, str] = {}
        for source_file in files:
            for section in source_file.sections:
                other = owners.get(section.number)
                if other is None:
                    owners[section.number] = source_file.path
                    continue
                errors.append(ParseError(
                    source_file.path,
                    f"duplicate section number {section.number} (also defined in {other})",
                    section.line,
                ))
        return errors

    @staticmethod
    def _relative(path: Path, root: Path) -> str:
        # path comes from walking the resolved root; a symlink may point elsewhere
        return path.relative_to(root).as_posix()
