#!/usr/bin/env python3
"""
sysdoc command-line interface.

Usage:
    sysdoc build docs/ -o build/SDD-001.docx
    sysdoc build docs/ -o build/document.md --format markdown
    sysdoc build docs/ -o build/document.html
    sysdoc validate docs/
    sysdoc config

Exit codes: 0 success, 1 validation findings or build errors.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from config.constants import LOG_FILE
from config.logging_config import setup_logger
from config.settings import settings
from .errors import SysdocError, ValidationFailed, SourceLoadError
from .export.base import ExportFormat
from . import pipeline

_FORMATS = {
    "docx": ExportFormat.DOCX,
    "markdown": ExportFormat.MARKDOWN,
    "md": ExportFormat.MARKDOWN,
    "html": ExportFormat.HTML,
    "htm": ExportFormat.HTML,
}

_EXTENSIONS = {
    ".md": ExportFormat.MARKDOWN,
    ".markdown": ExportFormat.MARKDOWN,
    ".html": ExportFormat.HTML,
    ".htm": ExportFormat.HTML,
}


def cmd_build(args) -> int:
    """Compile the document."""
    output = Path(args.output)
    if args.format:
        output_format = _FORMATS[args.format]
    else:
        output_format = _EXTENSIONS.get(output.suffix.lower(), ExportFormat.DOCX)
    try:
        result = pipeline.build(
            args.root,
            output,
            output_format=output_format,
            template_path=args.template,
            workers=args.workers,
            show_progress=sys.stderr.isatty(),
        )
    except ValidationFailed as e:
        print_findings(e.findings)
        return 1
    except SourceLoadError as e:
        print_errors([str(err) for err in e.errors])
        return 1
    except SysdocError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    print(f"Wrote {result.output_path}")
    return 0


def cmd_validate(args) -> int:
    """Check references without writing output."""
    try:
        findings = pipeline.validate(args.root, workers=args.workers, show_progress=sys.stderr.isatty())
    except SourceLoadError as e:
        print_errors([str(err) for err in e.errors])
        return 1
    except SysdocError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if findings:
        print_findings(findings)
        return 1
    print("No problems found")
    return 0


def cmd_config(args) -> int:
    """Show the effective settings."""
    settings.print_config()
    return 0


def print_findings(findings) -> None:
    """Print validation findings"""
    print(f"{len(findings)} unresolved reference(s):", file=sys.stderr)
    for finding in findings:
        print(f"  [{finding.kind.value}] {finding.file}: {finding.target}", file=sys.stderr)


def print_errors(errors: List[str]) -> None:
    """Print structural errors"""
    print(f"{len(errors)} source error(s):", file=sys.stderr)
    for error in errors:
        print(f"  {error}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysdoc",
        description="Compile numbered Markdown sources into a DOCX, Markdown or HTML document",
    )
    parser.add_argument("--log-level", default=settings.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("--log-file", nargs="?", const=LOG_FILE, default=settings.log_file,
                        help=f"Also log to a rotating file (default path: {LOG_FILE})")
    parser.add_argument("--workers", type=int, default=None,
                        help="Parser threads")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Build command
    build_parser_ = subparsers.add_parser("build", help="Build the document")
    build_parser_.add_argument("root", help="Document root directory")
    build_parser_.add_argument("-o", "--output", required=True, help="Output file")
    build_parser_.add_argument("-f", "--format", choices=sorted(_FORMATS),
                               help="Output format (default: from output extension)")
    build_parser_.add_argument("-t", "--template", default=None,
                               help="DOCX template (overrides sysdoc.toml)")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Check references only")
    validate_parser.add_argument("root", help="Document root directory")

    # Config command
    subparsers.add_parser("config", help="Show process settings")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logger('sysdoc', level=args.log_level, log_file=args.log_file)

    commands = {
        "build": cmd_build,
        "validate": cmd_validate,
        "config": cmd_config,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
