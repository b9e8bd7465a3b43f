"""
Unit Tests for the template-based DOCX exporter.

Packages are inspected both through python-docx and as raw zip entries.
"""

import zipfile

import pytest
from docx import Document

from sysdoc.errors import TemplateError
from sysdoc.export.docx_media import fit_extent, svg_length, svg_size
from sysdoc.export.docx_package import normalize_archive
from sysdoc.export.docx_template_exporter import DocxTemplateExporter
from sysdoc.rendering.document_model import DocumentMetadata
from tests.conftest import load_and_transform, png_bytes, write_tree


W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"


def media_entries(path):
    with zipfile.ZipFile(path) as archive:
        return [name for name in archive.namelist() if name.startswith("word/media/")]


def paragraph_styles(path):
    return [(p.style.style_id, p.text) for p in Document(str(path)).paragraphs]


class TestPackage:
    """Test the written package."""

    def test_diagram_document(self, diagram_root, temp_dir):
        """Test headings follow the tree and the SVG is embedded once."""
        document = load_and_transform(diagram_root)
        output = DocxTemplateExporter().export(document, temp_dir / "out" / "doc.docx")

        assert output.exists()
        assert media_entries(output) == ["word/media/image1.svg"]
        headings = [(s, t) for s, t in paragraph_styles(output) if s.startswith("Heading")]
        assert headings == [("Heading1", "1"), ("Heading2", "1.1 Introduction"), ("Heading2", "1.2 Diagram")]

    def test_svg_sized_from_attributes(self, diagram_root, temp_dir):
        """Test the picture extent comes from the SVG's pixel size at 96 DPI."""
        output = DocxTemplateExporter().export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        body = Document(str(output)).element.body
        extents = body.findall(".//{http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing}extent")
        assert len(extents) == 1
        assert extents[0].get("cx") == str(2 * 914400)
        assert extents[0].get("cy") == str(914400)

    def test_image_deduplicated(self, full_root, temp_dir):
        """Test a raster image referenced twice is one media part."""
        output = DocxTemplateExporter().export(load_and_transform(full_root), temp_dir / "doc.docx")
        assert len(media_entries(output)) == 1
        assert media_entries(output)[0].endswith(".png")

    def test_tables_and_caption(self, full_root, temp_dir):
        """Test Markdown and CSV tables become native tables."""
        output = DocxTemplateExporter().export(load_and_transform(full_root), temp_dir / "doc.docx")
        docx = Document(str(output))
        assert len(docx.tables) == 2
        assert [c.text for c in docx.tables[1].rows[0].cells] == ["Parameter", "Value"]
        assert docx.tables[1].rows[2].cells[1].text == "0.2"
        assert "Figure 1" in [p.text for p in docx.paragraphs]

    def test_lists_numbered(self, full_root, temp_dir):
        """Test list paragraphs carry numbering and each list restarts."""
        output = DocxTemplateExporter().export(load_and_transform(full_root), temp_dir / "doc.docx")
        docx = Document(str(output))
        num_ids = []
        for paragraph in docx.paragraphs:
            num_pr = paragraph._p.find(f"{W_NS}pPr/{W_NS}numPr")
            if num_pr is not None:
                num_ids.append(num_pr.find(f"{W_NS}numId").get(f"{W_NS}val"))
        assert len(num_ids) == 4
        assert num_ids[0] == num_ids[1]
        assert num_ids[2] == num_ids[3]
        assert num_ids[0] != num_ids[2]

    def test_core_properties(self, full_root, temp_dir):
        """Test metadata lands in the core properties."""
        document = load_and_transform(full_root)
        document.metadata = DocumentMetadata(
            title="Flight Software Design",
            subtitle="GNC",
            description="Design of the GNC software",
            document_id="SDD-001",
            system_id="GNC",
            document_type="SDD",
            standard="DI-IPSC-81435B",
            owner_name="Ada Lovelace",
        )
        output = DocxTemplateExporter().export(document, temp_dir / "doc.docx")
        props = Document(str(output)).core_properties
        assert props.title == "Flight Software Design"
        assert props.subject == "GNC"
        assert props.comments == "Design of the GNC software"
        assert props.keywords == "SDD-001, GNC, SDD, DI-IPSC-81435B"
        assert props.author == "Ada Lovelace"

    def test_deterministic(self, full_root, temp_dir):
        """Test two exports of the same document are byte-identical."""
        document = load_and_transform(full_root)
        first = DocxTemplateExporter().export(document, temp_dir / "a.docx").read_bytes()
        second = DocxTemplateExporter().export(document, temp_dir / "b.docx").read_bytes()
        assert first == second

    def test_source_date_epoch(self, diagram_root, temp_dir, monkeypatch):
        """Test SOURCE_DATE_EPOCH fixes the core property dates."""
        monkeypatch.setenv("SOURCE_DATE_EPOCH", "1700000000")
        output = DocxTemplateExporter().export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        props = Document(str(output)).core_properties
        assert props.created.year == 2023
        assert props.created == props.modified

    def test_zip_timestamps_fixed(self, diagram_root, temp_dir):
        """Test every archive entry carries the fixed timestamp."""
        output = DocxTemplateExporter().export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        with zipfile.ZipFile(output) as archive:
            assert {info.date_time for info in archive.infolist()} == {(1980, 1, 1, 0, 0, 0)}

    def test_heading_clamp(self, doc_root, temp_dir):
        """Test deep sections use the deepest heading style."""
        write_tree(doc_root, {"01_a.md": "# A\n\n## B\n\n### C\n"})
        document = load_and_transform(doc_root, max_heading_level=2)
        output = DocxTemplateExporter().export(document, temp_dir / "doc.docx")
        styles = [s for s, _ in paragraph_styles(output) if s.startswith("Heading")]
        assert styles == ["Heading1", "Heading2", "Heading2"]



class TestNavigation:
    """Test section bookmarks and internal links."""

    def test_headings_bookmarked(self, diagram_root, temp_dir):
        """Test every section heading carries a bookmark named after its number."""
        output = DocxTemplateExporter().export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        body = Document(str(output)).element.body
        names = [b.get(f"{W_NS}name") for b in body.iter(f"{W_NS}bookmarkStart")]
        assert names == ["sec_1", "sec_1_1", "sec_1_2"]
        assert len(list(body.iter(f"{W_NS}bookmarkEnd"))) == 3

    def test_internal_links_jump_to_bookmarks(self, doc_root, temp_dir):
        """Test "#anchor" and "file.md#anchor" links target section bookmarks."""
        write_tree(doc_root, {
            "01_a.md": "# A\n\nSee [interfaces](02_b.md#interfaces) and [top](#a).\n",
            "02_b.md": "# B\n\n## Interfaces\n\nText.\n",
        })
        output = DocxTemplateExporter().export(load_and_transform(doc_root), temp_dir / "doc.docx")
        body = Document(str(output)).element.body
        anchors = [h.get(f"{W_NS}anchor") for h in body.iter(f"{W_NS}hyperlink")]
        assert anchors == ["sec_2_1", "sec_1"]

    def test_heading_image_embedded(self, doc_root, temp_dir):
        """Test an image inside a subsection heading is embedded."""
        write_tree(doc_root, {
            "01_a.md": "# A\n\n## Sub ![icon](icon.png)\n\nText.\n",
            "icon.png": png_bytes(),
        })
        document = load_and_transform(doc_root)
        output = DocxTemplateExporter().export(document, temp_dir / "doc.docx")
        assert len(media_entries(output)) == 1
        headings = [t for s, t in paragraph_styles(output) if s == "Heading2"]
        assert len(headings) == 1 and headings[0].startswith("1.1 Sub")


class TestTemplate:
    """Test template handling."""

    def test_template_body_cleared(self, diagram_root, docx_template, temp_dir):
        """Test template content is dropped while its styles are kept."""
        exporter = DocxTemplateExporter(template_path=docx_template)
        output = exporter.export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        texts = [p.text for p in Document(str(output)).paragraphs]
        assert "Template boilerplate that must not survive" not in texts
        assert "1.1 Introduction" in texts

    def test_template_not_modified(self, diagram_root, docx_template, temp_dir):
        """Test the template file is never written."""
        before = docx_template.read_bytes()
        DocxTemplateExporter(template_path=docx_template).export(
            load_and_transform(diagram_root), temp_dir / "doc.docx"
        )
        assert docx_template.read_bytes() == before

    def test_missing_template(self, temp_dir):
        """Test a missing template fails at construction."""
        with pytest.raises(TemplateError):
            DocxTemplateExporter(template_path=temp_dir / "absent.docx")

    def test_corrupt_template(self, temp_dir):
        """Test a non-package template fails at construction."""
        bad = temp_dir / "bad.docx"
        bad.write_bytes(b"not a zip file")
        with pytest.raises(TemplateError):
            DocxTemplateExporter(template_path=bad)


class TestFallbacks:
    """Test graceful degradation."""

    def test_external_image_as_text(self, doc_root, temp_dir):
        """Test a URL image becomes bracketed text with a warning."""
        write_tree(doc_root, {"01_a.md": "# A\n\n![Logo](https://example.com/logo.png)\n"})
        exporter = DocxTemplateExporter()
        output = exporter.export(load_and_transform(doc_root), temp_dir / "doc.docx")
        assert "[Image: Logo]" in [p.text for p in Document(str(output)).paragraphs]
        assert any("not a local file" in w for w in exporter.warnings)
        assert media_entries(output) == []

    def test_raw_html_as_text(self, doc_root, temp_dir):
        """Test raw HTML falls back to text; comments are dropped."""
        write_tree(doc_root, {"01_a.md": "# A\n\n<div>raw</div>\n\n<!-- note -->\n"})
        exporter = DocxTemplateExporter()
        output = exporter.export(load_and_transform(doc_root), temp_dir / "doc.docx")
        texts = [p.text for p in Document(str(output)).paragraphs]
        assert "<div>raw</div>" in texts
        assert "<!-- note -->" not in texts
        assert len(exporter.warnings) == 1

    def test_unreadable_image_dimensions(self, doc_root, temp_dir):
        """Test an SVG without dimensions is placed at the default size."""
        write_tree(doc_root, {
            "01_a.md": "![x](blank.svg)\n",
            "blank.svg": '<svg xmlns="http://www.w3.org/2000/svg"></svg>',
        })
        exporter = DocxTemplateExporter()
        exporter.export(load_and_transform(doc_root), temp_dir / "doc.docx")
        assert any("blank.svg" in w for w in exporter.warnings)


class TestMediaHelpers:
    """Test image sizing helpers."""

    def test_fit_extent_unchanged(self):
        """Test small images keep their size."""
        assert fit_extent(96, 48, 96, 10 * 914400) == (914400, 457200)

    def test_fit_extent_clamped(self):
        """Test wide images are scaled down keeping aspect ratio."""
        assert fit_extent(960, 480, 96, 5 * 914400) == (5 * 914400, int(2.5 * 914400))

    def test_svg_length_units(self):
        """Test CSS unit conversion."""
        assert svg_length("1in") == 96.0
        assert svg_length("12pc") == 192.0
        assert svg_length("50%") is None

    def test_svg_viewbox(self):
        """Test viewBox fallback and width-only scaling."""
        assert svg_size(b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 300 150"/>') == (300.0, 150.0)
        assert svg_size(b'<svg xmlns="http://www.w3.org/2000/svg" width="600" viewBox="0 0 300 150"/>') == (600.0, 300.0)
        assert svg_size(b'not xml') is None

    def test_normalize_archive_idempotent(self, diagram_root, temp_dir):
        """Test normalizing twice changes nothing."""
        output = DocxTemplateExporter().export(load_and_transform(diagram_root), temp_dir / "doc.docx")
        data = output.read_bytes()
        assert normalize_archive(data) == data
