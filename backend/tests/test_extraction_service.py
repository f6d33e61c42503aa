"""
Unit tests for ExtractionService.

Tests cover:
- Text excerpts: placement, naming, records and parent penalty
- Nested excerpts in the flat folder
- Duplicate detection
- Rollback of the file when the store write fails
- Flashcard, PDF and video excerpts
"""

import sqlite3
from datetime import datetime
from unittest.mock import patch

import pytest
from PyPDF2 import PdfWriter

from incread.errors import (
    CallerError,
    DuplicateRangeError,
    InvalidRangeError,
    NoteNotFoundError,
    StoreAccessError,
)
from incread.models.source_models import (
    CharOffset,
    LinePosition,
    PagePosition,
    PdfPosition,
    TimeOffset,
)
from incread.services.extraction_service import ExtractionService
from incread.services.fingerprint import fingerprint
from incread.services.naming import parse_note_file_name
from incread.services.queue_scheduler import QueueScheduler
from incread.services.range_validator import RangeValidator

NOW = datetime(2026, 3, 10, 9, 0, 0)

PAPER = "\n".join(
    [
        "Introduction to quantum mechanics",
        "Quantum states evolve unitarily",
        "between measurements.",
        "Measurement collapses the state.",
        "Conclusion",
    ]
)


@pytest.fixture
def extractor(workspace):
    return ExtractionService(workspace)


@pytest.fixture
def paper(workspace, write_note):
    """A tracked top-level document at reading/paper.md."""
    write_note("reading/paper.md", PAPER)
    QueueScheduler(workspace).add_to_queue("reading/paper.md", now=NOW)
    return "reading/paper.md"


def lines(start: int, end: int):
    return LinePosition(line=start), LinePosition(line=end)


def get_note(service, path):
    with service.get_connection() as conn:
        return service.get_note(conn, path)


class TestTextExtraction:
    """Tests for text-lines excerpts."""

    def test_creates_file_in_flat_folder(self, extractor, paper, workspace_dir):
        text = "Quantum states evolve unitarily\nbetween measurements."

        result = extractor.extract(paper, *lines(2, 3), text=text, now=NOW)

        assert result.ok is True
        assert result.child_path == "reading/paper/2-3-paper.md"
        assert (workspace_dir / result.child_path).read_text(encoding="utf-8") == text

    def test_records_note_queue_and_source(self, extractor, paper):
        text = "Quantum states evolve unitarily\nbetween measurements."

        child = extractor.extract(paper, *lines(2, 3), text=text, now=NOW).child_path

        note = get_note(extractor, child)
        assert note.rank == 70.0
        assert note.intermediate_interval == 7
        assert note.due_time == "2026-03-10 09:00:00"

        with extractor.get_connection() as conn:
            assert extractor.get_queue_name(conn, child) == "intermediate"
            source = extractor.get_note_source(conn, child)
        assert source.parent_path == paper
        assert source.extract_type == "text-lines"
        assert source.range_start == LinePosition(line=2)
        assert source.range_end == LinePosition(line=3)
        assert source.source_hash == fingerprint(text)

    def test_parent_penalty(self, extractor, paper):
        extractor.extract(paper, *lines(2, 3), now=NOW)
        extractor.extract(paper, *lines(4, 4), now=NOW)

        parent = get_note(extractor, paper)
        assert parent.extraction_count == 2
        assert parent.rank == 80.0

    def test_empty_text_uses_parent_window(self, extractor, paper, workspace_dir):
        child = extractor.extract(paper, *lines(4, 4), now=NOW).child_path

        assert (workspace_dir / child).read_text(encoding="utf-8") == "Measurement collapses the state."

    def test_selection_with_trailing_newline_stays_valid(
        self, extractor, paper, workspace_dir
    ):
        text = "Quantum states evolve unitarily\nbetween measurements.\n"

        child = extractor.extract(paper, *lines(2, 3), text=text, now=NOW).child_path

        assert (workspace_dir / child).read_text(encoding="utf-8") == text.rstrip("\n")
        assert RangeValidator(extractor.workspace).validate_range(child).status == "valid"

    def test_text_not_matching_lines_is_rejected(self, extractor, paper, workspace_dir):
        with pytest.raises(InvalidRangeError):
            extractor.extract(paper, *lines(2, 3), text="Something else", now=NOW)

        assert not (workspace_dir / "reading/paper").exists()

    def test_nested_excerpt_stays_in_flat_folder(self, extractor, paper, workspace_dir):
        child = extractor.extract(paper, *lines(2, 3), now=NOW).child_path
        (workspace_dir / child).write_text(
            "Core concepts of the theory\nmore", encoding="utf-8"
        )

        grandchild = extractor.extract(
            child, *lines(1, 1), text="Core concepts of the theory", now=NOW
        ).child_path

        assert grandchild == "reading/paper/2-3-paper.1-1-core-concepts-of.md"
        assert get_note(extractor, grandchild).rank == 70.0
        assert get_note(extractor, child).rank == 75.0

    def test_child_inherits_parent_rank(self, extractor, paper):
        QueueScheduler(extractor.workspace).update_rank(paper, 42.0)

        child = extractor.extract(paper, *lines(1, 1), now=NOW).child_path

        assert get_note(extractor, child).rank == 42.0


class TestDuplicatesAndErrors:
    """Tests for rejected extractions."""

    def test_same_range_twice_is_rejected(self, extractor, paper):
        extractor.extract(paper, *lines(2, 3), now=NOW)

        with pytest.raises(DuplicateRangeError, match="already exists"):
            extractor.extract(paper, *lines(2, 3), now=NOW)

        assert get_note(extractor, paper).extraction_count == 1

    def test_existing_file_is_not_overwritten(self, extractor, paper, write_note):
        write_note("reading/paper/2-3-paper.md", "hand written")

        with pytest.raises(DuplicateRangeError):
            extractor.extract(paper, *lines(2, 3), now=NOW)

    def test_untracked_parent(self, extractor, write_note, workspace_dir):
        write_note("loose.md", "text")

        with pytest.raises(NoteNotFoundError):
            extractor.extract("loose.md", *lines(1, 1), now=NOW)

        assert not (workspace_dir / "loose").exists()

    def test_position_kind_must_match(self, extractor, paper):
        with pytest.raises(InvalidRangeError):
            extractor.extract(
                paper, PagePosition(page=1), PagePosition(page=2), kind="text-lines", now=NOW
            )

    def test_inverted_range(self, extractor, paper):
        with pytest.raises(InvalidRangeError):
            extractor.extract(paper, *lines(4, 2), now=NOW)


class TestExtractionAtomicity:
    """Tests that file and records are created together or not at all."""

    def test_store_failure_removes_file(self, extractor, paper, workspace_dir):
        with patch.object(
            ExtractionService,
            "_insert_child_records",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with pytest.raises(StoreAccessError):
                extractor.extract(paper, *lines(2, 3), now=NOW)

        assert not (workspace_dir / "reading/paper/2-3-paper.md").exists()
        assert not (workspace_dir / "reading/paper").exists()
        assert get_note(extractor, "reading/paper/2-3-paper.md") is None
        assert get_note(extractor, paper).extraction_count == 0

    def test_partial_insert_is_rolled_back(self, extractor, paper, workspace_dir):
        """Test a failure after some inserts leaves no records behind."""
        original_update = ExtractionService.update_note

        def failing_update(self, conn, relative_path, **fields):
            if "extraction_count" in fields:
                raise sqlite3.OperationalError("database is locked")
            return original_update(self, conn, relative_path, **fields)

        with patch.object(ExtractionService, "update_note", failing_update):
            with pytest.raises(StoreAccessError):
                extractor.extract(paper, *lines(2, 3), now=NOW)

        assert get_note(extractor, "reading/paper/2-3-paper.md") is None
        with extractor.get_connection() as conn:
            assert extractor.get_note_source(conn, "reading/paper/2-3-paper.md") is None
        assert not (workspace_dir / "reading/paper/2-3-paper.md").exists()

    def test_existing_folder_is_kept(self, extractor, paper, workspace_dir):
        extractor.extract(paper, *lines(1, 1), now=NOW)

        with patch.object(
            ExtractionService,
            "_insert_child_records",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with pytest.raises(StoreAccessError):
                extractor.extract(paper, *lines(2, 3), now=NOW)

        assert (workspace_dir / "reading/paper/1-1-paper.md").exists()


class TestFlashcardExtraction:
    """Tests for flashcards cut from character offsets."""

    @pytest.fixture
    def geo(self, workspace, write_note):
        write_note("geo.md", "The capital of France is Paris.")
        QueueScheduler(workspace).add_to_queue("geo.md", now=NOW)
        return "geo.md"

    def test_flashcard_goes_to_spaced_queue(self, extractor, geo, workspace_dir):
        result = extractor.extract(
            geo,
            CharOffset(offset=25),
            CharOffset(offset=30),
            text="What is the capital of France?",
            kind="flashcard",
            now=NOW,
        )

        assert result.child_path == "geo/25-30-geo.md"
        with extractor.get_connection() as conn:
            assert extractor.get_queue_name(conn, result.child_path) == "spaced-standard"
            source = extractor.get_note_source(conn, result.child_path)
        assert source.source_hash == fingerprint("Paris")
        assert source.range_start == CharOffset(offset=25)
        assert (workspace_dir / result.child_path).read_text(encoding="utf-8") == (
            "What is the capital of France?"
        )

    def test_flashcard_easiness_from_queue(self, extractor, geo):
        child = extractor.extract(
            geo,
            CharOffset(offset=25),
            CharOffset(offset=30),
            kind="flashcard",
            queue_name="spaced-strict",
            now=NOW,
        ).child_path

        assert get_note(extractor, child).easiness == pytest.approx(2.8)

    def test_flashcard_needs_spaced_queue(self, extractor, geo):
        with pytest.raises(CallerError):
            extractor.extract(
                geo,
                CharOffset(offset=0),
                CharOffset(offset=3),
                kind="flashcard",
                queue_name="intermediate",
                now=NOW,
            )

    def test_offset_past_end(self, extractor, geo):
        with pytest.raises(InvalidRangeError):
            extractor.extract(
                geo, CharOffset(offset=0), CharOffset(offset=500), kind="flashcard", now=NOW
            )


class TestPdfAndVideoExtraction:
    """Tests for extracts without a line rendering."""

    @pytest.fixture
    def book(self, workspace, workspace_dir):
        pdf_path = workspace_dir / "books" / "book.pdf"
        pdf_path.parent.mkdir(parents=True)
        writer = PdfWriter()
        for _ in range(3):
            writer.add_blank_page(width=612, height=792)
        with open(pdf_path, "wb") as f:
            writer.write(f)
        QueueScheduler(workspace).add_to_queue("books/book.pdf", now=NOW)
        return "books/book.pdf"

    def test_page_range_has_no_fingerprint(self, extractor, book, workspace_dir):
        result = extractor.extract(
            book, PagePosition(page=1), PagePosition(page=2), kind="pdf-page", now=NOW
        )

        assert result.child_path == "books/book/1-2-book.md"
        assert (workspace_dir / result.child_path).exists()
        with extractor.get_connection() as conn:
            source = extractor.get_note_source(conn, result.child_path)
            queue_name = extractor.get_queue_name(conn, result.child_path)
        assert source.source_hash is None
        assert queue_name == "intermediate"

    def test_page_past_end_of_pdf(self, extractor, book):
        with pytest.raises(InvalidRangeError, match="out of range"):
            extractor.extract(
                book, PagePosition(page=2), PagePosition(page=5), kind="pdf-page", now=NOW
            )

    def test_pdf_text_positions(self, extractor, book):
        result = extractor.extract(
            book,
            PdfPosition(page=3, line=4),
            PdfPosition(page=3, line=8),
            text="Entropy always increases",
            kind="pdf-text",
            now=NOW,
        )

        assert result.child_path == "books/book/3_4-3_8-book.md"
        with extractor.get_connection() as conn:
            source = extractor.get_note_source(conn, result.child_path)
            raw = conn.execute(
                "SELECT range_start, range_end FROM note_source WHERE relative_path = ?",
                (result.child_path,),
            ).fetchone()
        assert source.range_start == PdfPosition(page=3, line=4)
        assert (raw["range_start"], raw["range_end"]) == ("3:4", "3:8")
        assert source.source_hash == fingerprint("Entropy always increases")

    def test_video_clip(self, extractor, workspace, write_note):
        write_note("lectures/talk.mp4", "binary")
        QueueScheduler(workspace).add_to_queue("lectures/talk.mp4", now=NOW)

        result = extractor.extract(
            "lectures/talk.mp4",
            TimeOffset(seconds=12.5),
            TimeOffset(seconds=40),
            text="Speaker defines entropy",
            kind="video-clip",
            now=NOW,
        )

        assert result.child_path == "lectures/talk/12_5-40-talk.md"
        assert parse_note_file_name("12_5-40-talk") is not None
        with extractor.get_connection() as conn:
            source = extractor.get_note_source(conn, result.child_path)
        assert source.source_hash is None
        assert source.range_start == TimeOffset(seconds=12.5)

    def test_sub_second_clips_get_distinct_names(self, extractor, workspace, write_note):
        write_note("talk.mp4", "binary")
        QueueScheduler(workspace).add_to_queue("talk.mp4", now=NOW)

        first = extractor.extract(
            "talk.mp4",
            TimeOffset(seconds=10.0),
            TimeOffset(seconds=10.4),
            text="greeting",
            kind="video-clip",
            now=NOW,
        ).child_path
        second = extractor.extract(
            "talk.mp4",
            TimeOffset(seconds=10.5),
            TimeOffset(seconds=10.9),
            text="greeting",
            kind="video-clip",
            now=NOW,
        ).child_path

        assert first == "talk/10-10_4-talk.md"
        assert second == "talk/10_5-10_9-talk.md"
