"""
Section metadata embedded in Markdown as a fenced ``sysdoc`` TOML block:

    ```sysdoc
    section_id = "SDD-3.2"
    traced_ids = ["SRS-001", "SRS-002"]
    generate_section_id_to_traced_ids_table = ["Section", "Requirements"]
    ```

The block is consumed by the loader and never rendered.
"""

import tomllib
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator


class SectionMetadata(BaseModel):
    """Traceability metadata for one section."""

    section_id: Optional[str] = Field(default=None, description="Unique id of the section, e.g. REQ-001")
    traced_ids: List[str] = Field(default_factory=list, description="Ids this section traces to")
    include_file: Optional[str] = Field(default=None, description="File appended to the section as a code block")
    generate_section_id_to_traced_ids_table: Optional[Tuple[str, str]] = Field(
        default=None, description="Column headers of a section_id -> traced_ids table"
    )
    generate_traced_ids_to_section_ids_table: Optional[Tuple[str, str]] = Field(
        default=None, description="Column headers of a traced_id -> section_ids table"
    )

    @field_validator(
        'generate_section_id_to_traced_ids_table',
        'generate_traced_ids_to_section_ids_table',
        mode='before',
    )
    @classmethod
    def _table_headers(cls, value):
        if value is None or value is False:
            return None
        if value is True:
            raise ValueError(
                'table generation requires custom headers: '
                'use ["Header1", "Header2"] instead of true'
            )
        return value

    @property
    def requests_tables(self) -> bool:
        return bool(
            self.generate_section_id_to_traced_ids_table
            or self.generate_traced_ids_to_section_ids_table
        )


def parse_section_metadata(content: str) -> SectionMetadata:
    """
    Parse the TOML body of a sysdoc block.

    Raises:
        ValueError: TOML syntax error or invalid field value.
    """
    try:
        data = tomllib.loads(content)
        return SectionMetadata.model_validate(data)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"invalid TOML in sysdoc block: {e}") from e
    except ValidationError as e:
        raise ValueError(f"invalid sysdoc metadata: {e}") from e
