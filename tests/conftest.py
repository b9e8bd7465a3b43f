"""
Pytest configuration and shared fixtures for sysdoc tests.
"""
import sys
import pytest
import tempfile
import shutil
from io import BytesIO
from pathlib import Path
from typing import Dict, Generator, Union

from docx import Document
from PIL import Image as PILImage

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sysdoc.source.loader import SourceLoader
from sysdoc.rendering.transformer import DocumentTransformer


SVG_FIGURE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="192" height="96" viewBox="0 0 192 96">'
    '<rect x="0" y="0" width="192" height="96" fill="#336699"/></svg>'
)

DOCUMENT_TOML = """\
document_id = "SDD-001"
document_title = "Flight Software Design"
document_subtitle = "Guidance, Navigation and Control"
document_type = "SDD"
document_standard = "DI-IPSC-81435B"
document_template = "sdd"
system_id = "GNC"

[document_owner]
name = "Ada Lovelace"
email = "ada@example.com"

[document_approver]
name = "Charles Babbage"
email = "charles@example.com"
"""


def png_bytes(width: int = 40, height: int = 20) -> bytes:
    """A small solid PNG."""
    buffer = BytesIO()
    PILImage.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def write_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    """Create files under root from a {relative path: content} mapping."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


def load_and_transform(root: Path, max_heading_level: int = 9):
    """Load a source tree and build its UnifiedDocument."""
    source_set = SourceLoader(workers=2).load(root)
    return DocumentTransformer(max_heading_level=max_heading_level).transform(source_set)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def doc_root(temp_dir: Path) -> Path:
    """Empty document root inside the temp dir."""
    root = temp_dir / "docs"
    root.mkdir()
    return root


@pytest.fixture
def diagram_root(doc_root: Path) -> Path:
    """Intro paragraph plus an image-only paragraph referencing fig.svg."""
    return write_tree(doc_root, {
        "01.01_intro.md": "# Introduction\n\nThis document describes the system.\n",
        "01.02_diagram.md": "# Diagram\n\n![Architecture](fig.svg)\n",
        "fig.svg": SVG_FIGURE,
    })


@pytest.fixture
def full_root(doc_root: Path) -> Path:
    """A richer document exercising most block kinds."""
    return write_tree(doc_root, {
        "sysdoc.toml": DOCUMENT_TOML,
        "01-overview/01.00_overview.md": (
            "# Overview\n\n"
            "Intro with **bold**, *italic*, ~~gone~~ and `code`.\n\n"
            "## Scope\n\n"
            "- first\n- second\n\n"
            "1. one\n2. two\n\n"
            "> Quoted text\n\n"
            "See [design](../02-design/02.01_design.md#design).\n"
        ),
        "02-design/02.01_design.md": (
            "# Design\n\n"
            "![Chart](figures/chart.png \"Figure 1\")\n\n"
            "Inline ![icon](figures/chart.png) in text.\n\n"
            "| Name | Value |\n|:-----|------:|\n| a | 1 |\n\n"
            "<!-- TABLE: data/params.csv -->\n\n"
            "```python\nprint('hi')\n```\n\n"
            "---\n"
        ),
        "02-design/figures/chart.png": png_bytes(),
        "02-design/data/params.csv": "Parameter,Value\nrate,50\ngain,0.2\n",
    })


@pytest.fixture
def docx_template(temp_dir: Path) -> Path:
    """A template package produced by python-docx with some body content."""
    path = temp_dir / "template.docx"
    template = Document()
    template.add_paragraph("Template boilerplate that must not survive")
    template.save(str(path))
    return path
