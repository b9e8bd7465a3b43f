"""
Package-level helpers for the DOCX exporter: core properties and
byte-reproducible archives.

Word packages are zip files; python-docx stamps every entry with the
current time, so the archive is rewritten with a fixed timestamp. Core
property dates come from SOURCE_DATE_EPOCH when set, otherwise from the
newest source file, so an unchanged source tree always yields the same
bytes.
"""

import logging
import os
import zipfile
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional

from config.constants import ARCHIVE_TIMESTAMP
from ..rendering.document_model import UnifiedDocument

logger = logging.getLogger(__name__)


def document_timestamp(document: UnifiedDocument) -> datetime:
    """Build timestamp: SOURCE_DATE_EPOCH, else newest source mtime, else the epoch."""
    epoch = os.environ.get('SOURCE_DATE_EPOCH')
    if epoch:
        try:
            return datetime.fromtimestamp(int(epoch), tz=timezone.utc).replace(tzinfo=None)
        except ValueError:
            logger.warning(f"Ignoring invalid SOURCE_DATE_EPOCH={epoch!r}")

    newest: Optional[float] = None
    if document.root is not None:
        paths = [document.root / p for p in document.file_anchors]
        paths += [asset.absolute_path for asset in document.images + document.tables]
        for path in paths:
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            newest = mtime if newest is None else max(newest, mtime)

    return datetime.fromtimestamp(int(newest or 0), tz=timezone.utc).replace(tzinfo=None)


def apply_core_properties(docx_document, document: UnifiedDocument, timestamp: datetime) -> None:
    """Fill dc/cp core properties from the document metadata."""
    meta = document.metadata
    props = docx_document.core_properties
    props.title = meta.title
    props.subject = meta.subtitle
    props.comments = meta.description
    props.keywords = ', '.join(meta.keywords)
    props.author = meta.owner_name
    props.last_modified_by = meta.owner_name
    props.identifier = meta.document_id
    props.category = meta.document_type
    props.revision = 1
    props.created = timestamp
    props.modified = timestamp


def normalize_archive(data: bytes) -> bytes:
    """Rewrite a zip with fixed entry timestamps and permissions, order kept."""
    output = BytesIO()
    with zipfile.ZipFile(BytesIO(data)) as source, \
            zipfile.ZipFile(output, 'w', zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            entry = zipfile.ZipInfo(info.filename, date_time=ARCHIVE_TIMESTAMP)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = 0o644 << 16
            target.writestr(entry, source.read(info.filename))
    return output.getvalue()


def package_bytes(docx_document) -> bytes:
    """Serialize a python-docx Document to reproducible bytes."""
    buffer = BytesIO()
    docx_document.save(buffer)
    return normalize_archive(buffer.getvalue())
