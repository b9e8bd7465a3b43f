"""
Document configuration - the ``sysdoc.toml`` descriptor next to the sources.

    document_id = "SDD-001"
    document_title = "Flight Software Design"
    document_type = "SDD"
    document_standard = "DI-IPSC-81435B"
    document_template = "sdd"
    docx_template_path = "templates/company.docx"

    [document_owner]
    name = "Ada Lovelace"
    email = "ada@example.com"

    [document_approver]
    name = "Charles Babbage"
    email = "charles@example.com"
"""

import logging
import tomllib
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from config.constants import DOCUMENT_CONFIG_FILE
from .errors import ConfigError

logger = logging.getLogger(__name__)


class Person(BaseModel):
    """Owner/approver contact pair."""
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Contact email")


class DocumentConfig(BaseModel):
    """Document metadata; optional fields fall back to empty strings."""

    system_id: str = Field(default="", description="Identifier of the system being documented")
    document_id: str = Field(..., description="Document identifier, e.g. SDD-001")
    document_title: str = Field(..., description="Title shown on the cover and in core properties")
    document_subtitle: str = Field(default="", description="Optional subtitle")
    document_description: str = Field(default="", description="Optional description (DOCX comments)")
    document_owner: Person
    document_approver: Person
    document_type: str = Field(..., description="Document type, e.g. SDD, SRS")
    document_standard: str = Field(..., description="Applicable standard")
    document_template: str = Field(..., description="Template name used to scaffold the project")
    docx_template_path: Optional[str] = Field(default=None, description="DOCX template, relative to the root")

    def template_path(self, root: Path) -> Optional[Path]:
        """Absolute template path, or None when no template is configured."""
        if not self.docx_template_path:
            return None
        path = Path(self.docx_template_path).expanduser()
        return path if path.is_absolute() else (Path(root) / path)


def load_document_config(location: Union[str, Path]) -> DocumentConfig:
    """
    Load and validate sysdoc.toml.

    Args:
        location: The config file or the document root containing it.

    Raises:
        ConfigError: File missing, TOML syntax error or missing/invalid fields.
    """
    path = Path(location)
    if path.is_dir():
        path = path / DOCUMENT_CONFIG_FILE
    if not path.is_file():
        raise ConfigError(f"Document configuration not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding='utf-8'))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    try:
        config = DocumentConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid document configuration {path}: {problems}") from e

    logger.debug(f"Loaded document configuration {config.document_id} from {path}")
    return config
