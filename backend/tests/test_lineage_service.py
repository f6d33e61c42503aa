"""
Unit tests for LineageResolver.
"""

import pytest

from incread.errors import LineageIntegrityError
from incread.models.queue_models import Note
from incread.models.source_models import LinePosition, NoteSource
from incread.services.lineage_service import LineageResolver, folder_for_top_level

NOW = "2026-03-10 09:00:00"

@pytest.fixture
def resolver(workspace):
    return LineageResolver(workspace)

def add_note(resolver: LineageResolver, path: str, parent: str | None = None, start: int = 1, end: int = 1):
    """Insert a note and, when parent is given, its lineage record."""
    with resolver.transaction() as conn:
        resolver.insert_note(
            conn,
            Note(
                library_id=resolver.library_id,
                relative_path=path,
                added_time=NOW,
                due_time=NOW,
            ),
        )
        if parent is not None:
            resolver.insert_note_source(
                conn,
                NoteSource(
                    library_id=resolver.library_id,
                    relative_path=path,
                    parent_path=parent,
                    extract_type="text-lines",
                    range_start=LinePosition(line=start),
                    range_end=LinePosition(line=end),
                    created_time=NOW,
                ),
            )

def link(resolver: LineageResolver, path: str, parent: str):
    """Add a lineage record for an existing note."""
    with resolver.transaction() as conn:
        resolver.insert_note_source(
            conn,
            NoteSource(
                library_id=resolver.library_id,
                relative_path=path,
                parent_path=parent,
                extract_type="text-lines",
                range_start=LinePosition(line=1),
                range_end=LinePosition(line=1),
                created_time=NOW,
            ),
        )

class TestTopLevelFolder:
    """Tests for the flat excerpt folder."""

    def test_folder_for_top_level(self):
        assert folder_for_top_level("standalone.md") == "standalone"
        assert folder_for_top_level("reading/paper.md") == "reading/paper"

    def test_untracked_note_is_top_level(self, resolver):
        assert resolver.find_top_level_folder("standalone.md") == "standalone"

    def test_excerpts_share_the_ancestor_folder(self, resolver):
        add_note(resolver, "reading/paper.md")
        add_note(resolver, "reading/paper/1-2-paper.md", parent="reading/paper.md")
        add_note(
            resolver,
            "reading/paper/1-2-paper.1-1-core.md",
            parent="reading/paper/1-2-paper.md",
        )

        assert resolver.find_top_level_folder("reading/paper/1-2-paper.1-1-core.md") == "reading/paper"
        assert resolver.find_top_level_folder("reading/paper/1-2-paper.md") == "reading/paper"
        assert resolver.find_top_level_ancestor("reading/paper/1-2-paper.1-1-core.md") == "reading/paper.md"

class TestParentLookup:
    """Tests for parent and extract info lookups."""

    def test_find_parent_path(self, resolver):
        add_note(resolver, "paper.md")
        add_note(resolver, "paper/1-2-paper.md", parent="paper.md")

        assert resolver.find_parent_path("paper/1-2-paper.md") == "paper.md"
        assert resolver.find_parent_path("paper.md") is None

    def test_extract_info(self, resolver, workspace_dir):
        add_note(resolver, "paper.md")
        add_note(resolver, "paper/3-5-paper.md", parent="paper.md", start=3, end=5)

        info = resolver.get_extract_info("paper/3-5-paper.md")

        assert info.found is True
        assert info.extract_type == "text-lines"
        assert info.parent_path == str(workspace_dir / "paper.md")
        assert info.range_start == LinePosition(line=3)
        assert info.range_end == LinePosition(line=5)

    def test_extract_info_for_top_level(self, resolver):
        add_note(resolver, "paper.md")
        assert resolver.get_extract_info("paper.md").found is False

class TestLineageIntegrity:
    """Tests for bounded chain walks."""

    def test_long_but_valid_chain(self, resolver):
        add_note(resolver, "n0.md")
        for i in range(1, 11):
            add_note(resolver, f"n{i}.md", parent=f"n{i - 1}.md")

        assert resolver.find_top_level_ancestor("n10.md") == "n0.md"

    def test_depth_cap_exceeded(self, resolver):
        add_note(resolver, "n0.md")
        for i in range(1, 25):
            add_note(resolver, f"n{i}.md", parent=f"n{i - 1}.md")

        with pytest.raises(LineageIntegrityError, match="exceeds"):
            resolver.find_top_level_folder("n24.md")

    def test_loop_is_detected(self, resolver):
        add_note(resolver, "a.md")
        add_note(resolver, "b.md", parent="a.md")
        link(resolver, "a.md", "b.md")

        with pytest.raises(LineageIntegrityError, match="loops"):
            resolver.find_top_level_folder("b.md")

class TestDescendants:
    """Tests for descendant traversal."""

    def test_depths_are_tagged(self, resolver):
        add_note(resolver, "p.md")
        add_note(resolver, "p/1-1-p.md", parent="p.md")
        add_note(resolver, "p/2-2-p.md", parent="p.md", start=2, end=2)
        add_note(resolver, "p/1-1-p.1-1-x.md", parent="p/1-1-p.md")

        with resolver.get_connection() as conn:
            descendants = resolver.get_descendants(conn, "p.md")

        depths = {d.relative_path: d.depth for d in descendants}
        assert depths == {"p/1-1-p.md": 1, "p/2-2-p.md": 1, "p/1-1-p.1-1-x.md": 2}

    def test_depth_cap(self, resolver):
        add_note(resolver, "n0.md")
        for i in range(1, 5):
            add_note(resolver, f"n{i}.md", parent=f"n{i - 1}.md")

        with resolver.get_connection() as conn:
            descendants = resolver.get_descendants(conn, "n0.md", max_depth=2)

        assert [d.relative_path for d in descendants] == ["n1.md", "n2.md"]

    def test_circular_child_is_marked_not_followed(self, resolver):
        add_note(resolver, "a.md")
        add_note(resolver, "b.md", parent="a.md")
        link(resolver, "a.md", "b.md")

        with resolver.get_connection() as conn:
            descendants = resolver.get_descendants(conn, "a.md")

        assert [(d.relative_path, d.depth, d.circular) for d in descendants] == [
            ("b.md", 1, False),
            ("a.md", 2, True),
        ]
