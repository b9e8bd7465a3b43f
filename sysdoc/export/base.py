#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base Exporter Interface

Defines the common interface for all exporters and the atomic file write
they share: output is assembled completely in memory (or a scratch
location) and only moved to the target path once it is whole.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List, Union

from ..errors import ExportError
from ..rendering.document_model import UnifiedDocument

logger = logging.getLogger(__name__)


class ExportFormat(Enum):
    """Supported output formats."""
    DOCX = "docx"
    MARKDOWN = "markdown"
    HTML = "html"


class BaseExporter(ABC):
    """
    Abstract base class for document exporters.

    All exporters must implement:
    - export(): write the document to output_path
    - supports_format(): check if format is supported
    """

    def __init__(self):
        self.warnings: List[str] = []

    @abstractmethod
    def export(self, document: UnifiedDocument, output_path: Union[str, Path]) -> Path:
        """
        Export to output file.

        Args:
            document: Transformed document
            output_path: Output file path

        Returns:
            Path to created file
        """
        pass

    @classmethod
    @abstractmethod
    def supports_format(cls, format_name: str) -> bool:
        """Check if exporter supports given format"""
        pass

    @classmethod
    def get_supported_formats(cls) -> List[str]:
        """Get list of supported formats"""
        return []

    def warn(self, message: str) -> None:
        """Record a non-fatal export problem."""
        logger.warning(message)
        self.warnings.append(message)


def stage_bytes(path: Union[str, Path], data: bytes) -> Path:
    """
    Write data to a temp file beside path and return the temp file.

    The caller moves it into place with os.replace (or unlinks it).

    Raises:
        ExportError: the target directory or file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise ExportError(f"Cannot write {path}: {e}") from e
    try:
        with os.fdopen(fd, 'wb') as handle:
            handle.write(data)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise ExportError(f"Cannot write {path}: {e}") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> Path:
    """
    Write data to path via a temp file in the same directory and os.replace.

    Raises:
        ExportError: the target directory or file cannot be written.
    """
    path = Path(path)
    staged = stage_bytes(path, data)
    try:
        os.replace(staged, path)
    except OSError as e:
        raise ExportError(f"Cannot write {path}: {e}") from e
    finally:
        staged.unlink(missing_ok=True)
    return path


def replace_directory(staging: Path, target: Path) -> None:
    """Move a fully written staging directory over target."""
    if target.exists():
        shutil.rmtree(target)
    os.replace(staging, target)
