"""
Unit Tests for the Markdown file parser.

Covers section splitting, in-file numbering, image classification and
reference recording.
"""

from pathlib import Path

import pytest

from sysdoc.source.markdown_parser import (
    MarkdownFileParser,
    create_markdown_parser,
    is_external,
    is_image_only,
    resolve_path,
)
from sysdoc.source.section_number import SectionNumber


def parse(text, known=(), rel_path="01.02_overview.md", number=(1, 2), root=Path(".")):
    parser = MarkdownFileParser(root, set(known))
    return parser.parse(text, rel_path, SectionNumber(number), "Overview")


def inline_token(text):
    tokens = create_markdown_parser().parse(text)
    return next(t for t in tokens if t.type == 'inline')


class TestSections:
    """Test heading-driven section splitting."""

    def test_title_from_first_heading(self):
        """Test the level-1 heading names the file's section."""
        title, sections, errors = parse("# System Overview\n\nText.\n")
        assert errors == []
        assert title == "System Overview"
        assert len(sections) == 1
        assert sections[0].number == SectionNumber((1, 2))
        assert sections[0].heading_text == "System Overview"

    def test_default_title_without_heading(self):
        """Test the filename title is used when no heading exists."""
        title, sections, _ = parse("Just text.\n")
        assert title == "Overview"
        assert sections[0].heading_text == "Overview"

    def test_subheadings_extend_number(self):
        """Test nested headings get in-file sub-numbers."""
        text = "# Top\n\n## Scope\n\n### Details\n\n## Context\n"
        _, sections, errors = parse(text)
        assert errors == []
        assert [s.number.parts for s in sections] == [(1, 2), (1, 2, 1), (1, 2, 1, 1), (1, 2, 2)]
        assert [s.heading_text for s in sections] == ["Top", "Scope", "Details", "Context"]

    def test_multiple_level_one_headings(self):
        """Test a second level-1 heading is an error."""
        _, _, errors = parse("# One\n\n# Two\n")
        assert len(errors) == 1
        assert "multiple level-1 headings" in errors[0].message
        assert errors[0].line == 3

    def test_level_one_after_subheading(self):
        """Test a level-1 heading after other headings is an error."""
        _, _, errors = parse("## Scope\n\n# Late\n")
        assert len(errors) == 1
        assert "precede" in errors[0].message

    def test_events_exclude_headings(self):
        """Test section events hold body tokens only."""
        _, sections, _ = parse("# Top\n\nBody.\n")
        types = [t.type for t in sections[0].events]
        assert types == ['paragraph_open', 'inline', 'paragraph_close']


class TestImageClassification:
    """Test the image-only paragraph predicate."""

    def test_image_only(self):
        """Test a paragraph with just an image."""
        assert is_image_only(inline_token("![alt](fig.svg)\n"))

    def test_image_with_text(self):
        """Test an image with surrounding text is inline."""
        assert not is_image_only(inline_token("See ![alt](fig.svg) here\n"))

    def test_two_images(self):
        """Test two images in one paragraph are not standalone."""
        assert not is_image_only(inline_token("![a](a.png) ![b](b.png)\n"))

    def test_standalone_flag_recorded(self):
        """Test the parser stores the classification on each reference."""
        text = "# T\n\n![Arch](fig.svg)\n\nSee ![icon](icon.png) inline.\n"
        _, sections, _ = parse(text, known={"fig.svg", "icon.png"})
        images = sections[0].images
        assert [(i.path, i.standalone) for i in images] == [("fig.svg", True), ("icon.png", False)]
        assert images[0].alt == "Arch"

    def test_image_ref_attached_to_token(self):
        """Test image tokens carry their reference in meta."""
        _, sections, _ = parse("![Arch](fig.svg)\n", known={"fig.svg"})
        inline = sections[0].events[1]
        image = inline.children[0]
        assert image.meta['image_ref'].path == "fig.svg"


class TestReferences:
    """Test table markers, links and path resolution."""

    def test_table_marker(self):
        """Test TABLE markers are recorded and tagged."""
        _, sections, _ = parse("<!-- TABLE: data/params.csv -->\n", known={"data/params.csv"})
        assert [t.path for t in sections[0].tables] == ["data/params.csv"]
        html = sections[0].events[0]
        assert html.meta['table_ref'].target == "data/params.csv"

    def test_links(self):
        """Test internal links are recorded and external ones ignored."""
        text = "[a](#scope) [b](02.01_design.md#design) [c](https://example.com) [d](notes.txt)\n"
        _, sections, _ = parse(text, known={"02.01_design.md"})
        links = sections[0].links
        assert [(l.file_path, l.anchor) for l in links] == [(None, "scope"), ("02.01_design.md", "design")]

    def test_heading_references(self):
        """Test images and links inside headings are recorded on their section."""
        text = "# Top ![logo](logo.png)\n\n## Sub ![icon](icon.png) [see](#top)\n"
        _, sections, _ = parse(text, known={"logo.png", "icon.png"})
        assert [i.path for i in sections[0].images] == ["logo.png"]
        assert [(i.path, i.standalone) for i in sections[1].images] == [("icon.png", False)]
        assert [l.anchor for l in sections[1].links] == ["top"]
        assert sections[1].heading_inline.children[1].meta['image_ref'].path == "icon.png"

    def test_external_image(self):
        """Test URL images have no local path."""
        _, sections, _ = parse("![logo](https://example.com/logo.png)\n")
        assert sections[0].images[0].is_external

    def test_resolve_prefers_file_directory(self):
        """Test the referencing file's directory is tried first."""
        known = {"02-design/fig.svg", "fig.svg"}
        assert resolve_path("fig.svg", "02-design", known) == "02-design/fig.svg"
        assert resolve_path("fig.svg", "03-other", known) == "fig.svg"

    def test_resolve_unknown_returns_file_relative(self):
        """Test missing targets are reported relative to the file."""
        assert resolve_path("../img/x.png", "02-design/sub", set()) == "02-design/img/x.png"

    def test_resolve_unquotes(self):
        """Test percent-encoded paths."""
        assert resolve_path("my%20fig.svg", "", {"my fig.svg"}) == "my fig.svg"

    @pytest.mark.parametrize("target,expected", [
        ("https://example.com/a.png", True),
        ("mailto:someone@example.com", True),
        ("//cdn.example.com/a.png", True),
        ("figures/a.png", False),
    ])
    def test_is_external(self, target, expected):
        """Test URL detection."""
        assert is_external(target) is expected


class TestMetadataBlocks:
    """Test sysdoc metadata fences."""

    def test_metadata_consumed(self):
        """Test the sysdoc block is parsed and not kept as an event."""
        text = '# T\n\n```sysdoc\nsection_id = "SDD-1"\ntraced_ids = ["SRS-1"]\n```\n'
        _, sections, errors = parse(text)
        assert errors == []
        assert sections[0].metadata.section_id == "SDD-1"
        assert sections[0].events == []

    def test_invalid_metadata(self):
        """Test bad TOML is a parse error."""
        _, _, errors = parse("```sysdoc\nsection_id = \n```\n")
        assert len(errors) == 1
        assert "sysdoc" in errors[0].message

    def test_include_file(self, temp_dir):
        """Test include_file appends a code block to the section."""
        (temp_dir / "snippet.py").write_text("print('x')\n", encoding="utf-8")
        text = '# T\n\n```sysdoc\ninclude_file = "snippet.py"\n```\n'
        _, sections, errors = parse(text, known={"snippet.py"}, root=temp_dir)
        assert errors == []
        fence = sections[0].events[-1]
        assert fence.type == 'fence'
        assert fence.info == 'python'
        assert fence.content == "print('x')\n"

    def test_include_file_missing(self, temp_dir):
        """Test a missing include_file is a parse error."""
        text = '```sysdoc\ninclude_file = "absent.py"\n```\n'
        _, _, errors = parse(text, root=temp_dir)
        assert len(errors) == 1
        assert "include_file not found" in errors[0].message
