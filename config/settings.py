#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Process-level configuration for the compiler.

Per-document metadata lives in sysdoc.toml (see sysdoc.document_config);
these settings only tune how a build runs.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings

from .constants import (
    PARSE_WORKERS,
    DEFAULT_IMAGE_DPI,
    MAX_IMAGE_WIDTH_INCHES,
    LOG_LEVEL,
)


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== Performance ==========
    parse_workers: int = PARSE_WORKERS  # threads used to parse markdown files

    # ========== Images ==========
    image_dpi: int = DEFAULT_IMAGE_DPI
    max_image_width_inches: float = MAX_IMAGE_WIDTH_INCHES

    # ========== Logging ==========
    log_level: str = LOG_LEVEL
    log_file: Optional[str] = None  # rotating file log, off by default

    class Config:
        env_prefix = "SYSDOC_"
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def print_config(self):
        """Print configuration summary"""
        print("\n" + "=" * 50)
        print("SYSDOC CONFIGURATION")
        print("=" * 50)
        print(f"Parse workers:   {self.parse_workers}")
        print(f"Image DPI:       {self.image_dpi}")
        print(f"Max image width: {self.max_image_width_inches} in")
        print(f"Log level:       {self.log_level}")
        print(f"Log file:        {self.log_file or '-'}")
        print("=" * 50 + "\n")


# Global settings instance
settings = Settings()
