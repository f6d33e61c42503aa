"""
Unit tests for excerpt file naming.
"""

from incread.services.naming import (
    generate_child_name,
    parse_note_file_name,
    slugify,
)


class TestSlugify:
    """Tests for slug generation."""

    def test_first_three_words(self):
        assert slugify("Core concepts of the theory") == "core-concepts-of"

    def test_punctuation_is_dropped(self):
        assert slugify("Line 5: This is a test") == "line-5-this"

    def test_no_usable_words(self):
        assert slugify("!!! ---") == ""

    def test_unbounded(self):
        assert slugify("my-research-paper", max_words=None) == "my-research-paper"


class TestGenerateChildName:
    """Tests for child names built from the parent chain."""

    def test_top_level_parent_uses_parent_name(self):
        """Test a top-level parent contributes its own name as the slug."""
        name = generate_child_name(
            "my-research-paper.md", "10", "20", "Introduction to quantum mechanics"
        )
        assert name == "10-20-my-research-paper.md"

    def test_chained_parent_appends_segment(self):
        name = generate_child_name(
            "docs/paper/10-20-introduction.md", "15", "18", "Core concepts of the theory"
        )
        assert name == "10-20-introduction.15-18-core-concepts-of.md"

    def test_three_layers(self):
        name = generate_child_name(
            "10-20-introduction.15-18-core-concepts-of.md",
            "17",
            "17",
            "Important note here",
        )
        assert name == "10-20-introduction.15-18-core-concepts-of.17-17-important-note-here.md"

    def test_top_level_parent_without_words_falls_back_to_text(self):
        name = generate_child_name("???.md", "1", "2", "Entropy and heat")
        assert name == "1-2-entropy-and-heat.md"

    def test_chained_parent_without_text_words(self):
        name = generate_child_name("1-2-paper.md", "3", "3", "...", parent_is_top_level=False)
        assert name == "1-2-paper.3-3-excerpt.md"

    def test_explicit_top_level_overrides_name_shape(self):
        """Test a top-level document whose name looks like a chain."""
        name = generate_child_name("2024-01-notes.md", "5", "6", "text", parent_is_top_level=True)
        assert name == "5-6-2024-01-notes.md"

    def test_non_overlapping_ranges_do_not_collide(self):
        first = generate_child_name("paper.md", "1", "3", "same text")
        second = generate_child_name("paper.md", "4", "6", "same text")
        assert first != second

    def test_composite_tokens(self):
        name = generate_child_name("book.pdf", "3_4", "3_8", "Entropy always increases")
        assert name == "3_4-3_8-book.md"


class TestParseNoteFileName:
    """Tests for reading a chain back out of a name."""

    def test_two_segments(self):
        segments = parse_note_file_name("10-20-intro.15-18-core")

        assert segments is not None
        assert len(segments) == 2
        assert (segments[0].range_start, segments[0].range_end, segments[0].name) == (
            "10",
            "20",
            "intro",
        )
        assert segments[1].name == "core"

    def test_composite_segment(self):
        segments = parse_note_file_name("3_4-3_8-book")
        assert segments[0].range_start == "3_4"

    def test_invalid_names(self):
        assert parse_note_file_name("invalid-format") is None
        assert parse_note_file_name("10-intro") is None
        assert parse_note_file_name("") is None

    def test_any_bad_segment_rejects_whole_name(self):
        assert parse_note_file_name("10-20-intro.notes") is None
