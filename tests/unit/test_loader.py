"""
Unit Tests for SourceLoader.
"""

import pytest

from sysdoc.errors import SourceLoadError
from sysdoc.source.loader import SourceLoader, media_kind
from sysdoc.source.models import MediaKind
from sysdoc.source.section_number import SectionNumber
from tests.conftest import SVG_FIGURE, png_bytes, write_tree


class TestDiscovery:
    """Test file discovery and classification."""

    def test_loads_sorted_files(self, doc_root):
        """Test files come back in section-number order."""
        write_tree(doc_root, {
            "01.10_late.md": "# Late\n",
            "01.02_early.md": "# Early\n",
            "01.09_middle.md": "# Middle\n",
        })
        source_set = SourceLoader(workers=3).load(doc_root)
        assert [f.number.parts for f in source_set.files] == [(1, 2), (1, 9), (1, 10)]

    def test_assets_classified(self, doc_root):
        """Test images and CSV files become assets keyed by relative path."""
        write_tree(doc_root, {
            "01_a.md": "# A\n",
            "figures/a.png": png_bytes(),
            "figures/b.drawio.svg": SVG_FIGURE,
            "data/t.csv": "a,b\n1,2\n",
            "notes.txt": "ignored",
        })
        source_set = SourceLoader().load(doc_root)
        kinds = {path: asset.kind for path, asset in source_set.assets.items()}
        assert kinds == {
            "figures/a.png": MediaKind.RASTER,
            "figures/b.drawio.svg": MediaKind.VECTOR,
            "data/t.csv": MediaKind.CSV,
        }

    def test_asset_payload_is_lazy(self, doc_root):
        """Test asset bytes are read on first access."""
        write_tree(doc_root, {"01_a.md": "# A\n", "fig.svg": SVG_FIGURE})
        asset = SourceLoader().load(doc_root).assets["fig.svg"]
        assert "data" not in asset.__dict__
        assert asset.data == SVG_FIGURE.encode("utf-8")

    def test_unnumbered_markdown_skipped(self, doc_root):
        """Test README-style files without a prefix are ignored."""
        write_tree(doc_root, {"README.md": "# Readme\n", "01_a.md": "# A\n"})
        source_set = SourceLoader().load(doc_root)
        assert [f.path for f in source_set.files] == ["01_a.md"]

    def test_hidden_directories_skipped(self, doc_root):
        """Test dot-directories are not walked."""
        write_tree(doc_root, {".git/01_x.md": "# X\n", "01_a.md": "# A\n"})
        assert len(SourceLoader().load(doc_root).files) == 1

    def test_excluded_directory(self, doc_root):
        """Test an excluded output directory is not read back."""
        write_tree(doc_root, {"01_a.md": "# A\n", "build/02_bundle.md": "# B\n"})
        source_set = SourceLoader(exclude=[doc_root / "build"]).load(doc_root)
        assert [f.path for f in source_set.files] == ["01_a.md"]

    def test_folder_titles(self, doc_root):
        """Test numbered folders name implied parents."""
        write_tree(doc_root, {"03-interfaces/03.01_bus.md": "# Bus\n"})
        source_set = SourceLoader().load(doc_root)
        assert source_set.folder_titles[(3,)] == "Interfaces"

    def test_utf8_bom(self, doc_root):
        """Test a byte-order mark is stripped."""
        (doc_root / "01_a.md").write_bytes("\ufeff# Ünïcode\n".encode("utf-8"))
        source_set = SourceLoader().load(doc_root)
        assert source_set.files[0].title == "Ünïcode"

    def test_symlink_outside_root(self, doc_root, temp_dir):
        """Test a figure linked in from outside the root keeps its in-root path."""
        shared = temp_dir / "shared.png"
        shared.write_bytes(png_bytes())
        (doc_root / "shared.png").symlink_to(shared)
        write_tree(doc_root, {"01_a.md": "# A\n\n![s](shared.png)\n"})

        source_set = SourceLoader().load(doc_root)
        asset = source_set.assets["shared.png"]
        assert asset.absolute_path == shared.resolve()
        assert asset.data == shared.read_bytes()

    def test_media_kind(self, temp_dir):
        """Test extension classification."""
        assert media_kind(temp_dir / "a.JPG") is MediaKind.RASTER
        assert media_kind(temp_dir / "a.svg") is MediaKind.VECTOR
        assert media_kind(temp_dir / "a.txt") is None


class TestErrors:
    """Test error accumulation."""

    def test_all_errors_reported(self, doc_root):
        """Test every broken file is reported in one pass."""
        write_tree(doc_root, {
            "01x_bad.md": "# Bad\n",
            "02_two.md": "# One\n\n# Two\n",
            "03_ok.md": "# Ok\n",
        })
        (doc_root / "04_latin.md").write_bytes(b"# Caf\xe9\n")

        with pytest.raises(SourceLoadError) as excinfo:
            SourceLoader().load(doc_root)

        files = sorted(e.file for e in excinfo.value.errors)
        assert files == ["01x_bad.md", "02_two.md", "04_latin.md"]
        messages = " ".join(e.message for e in excinfo.value.errors)
        assert "unparsable section number" in messages
        assert "not valid UTF-8" in messages

    def test_duplicate_siblings(self, doc_root):
        """Test two files with the same number."""
        write_tree(doc_root, {"01.02_a.md": "# A\n", "01.02_b.md": "# B\n"})
        with pytest.raises(SourceLoadError) as excinfo:
            SourceLoader().load(doc_root)
        assert len(excinfo.value.errors) == 1
        assert "duplicate section number 1.2" in excinfo.value.errors[0].message

    def test_duplicate_across_folders(self, doc_root):
        """Test a collision between different folders."""
        write_tree(doc_root, {"a/02_x.md": "# X\n", "b/02_y.md": "# Y\n"})
        with pytest.raises(SourceLoadError):
            SourceLoader().load(doc_root)

    def test_subheading_collides_with_file(self, doc_root):
        """Test an in-file sub-number that another file also claims."""
        write_tree(doc_root, {"01_a.md": "# A\n\n## Sub\n", "01.01_b.md": "# B\n"})
        with pytest.raises(SourceLoadError) as excinfo:
            SourceLoader().load(doc_root)
        assert "1.1" in str(excinfo.value)

    def test_root_must_exist(self, temp_dir):
        """Test a missing root directory."""
        with pytest.raises(SourceLoadError):
            SourceLoader().load(temp_dir / "absent")


class TestStatistics:
    """Test SourceSet statistics."""

    def test_statistics(self, diagram_root):
        """Test counts of files, sections and assets."""
        stats = SourceLoader().load(diagram_root).get_statistics()
        assert stats == {"files": 2, "sections": 2, "images": 1, "tables": 0}

    def test_sections_numbered(self, diagram_root):
        """Test each file contributes its own numbered section."""
        source_set = SourceLoader().load(diagram_root)
        assert [s.number for s in source_set.sections] == [SectionNumber((1, 1)), SectionNumber((1, 2))]
