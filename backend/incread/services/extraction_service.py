"""
Extraction Coordinator Module

Creates excerpt notes. An excerpt is written as a new file in its
document's flat folder and recorded in the store (note row, queue
membership, lineage row and the parent's rank penalty). The file is
written first with exclusive creation; if the store transaction then fails
the file is removed again, so neither side is left without the other.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path, PurePosixPath

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..errors import CallerError, DuplicateRangeError, InvalidRangeError, UnknownQueueError
from ..models.queue_models import QUEUE_CATALOG, SPACED_QUEUES, Note
from ..models.source_models import (
    POSITION_KIND_BY_TYPE,
    CharOffset,
    ExtractResult,
    LinePosition,
    NoteSource,
    PagePosition,
    PdfPosition,
    Position,
    TimeOffset,
    name_token,
)
from .base_database_service import format_timestamp
from .fingerprint import extract_lines, fingerprint
from .lineage_service import LineageResolver, folder_for_top_level
from .naming import generate_child_name

# Configure logger for this module
logger = logging.getLogger(__name__)

DEFAULT_FLASHCARD_QUEUE = "spaced-standard"
DEFAULT_EXCERPT_QUEUE = "intermediate"


def _position_key(position: Position) -> tuple:
    if isinstance(position, LinePosition):
        return (position.line,)
    if isinstance(position, PagePosition):
        return (position.page,)
    if isinstance(position, PdfPosition):
        return (position.page, position.line)
    if isinstance(position, CharOffset):
        return (position.offset,)
    if isinstance(position, TimeOffset):
        return (position.seconds,)
    raise TypeError(f"Unsupported position: {position!r}")


class ExtractionService(LineageResolver):
    """Turns a range of a parent note into a scheduled excerpt note."""

    def extract(
        self,
        parent_path: str,
        range_start: Position,
        range_end: Position,
        text: str = "",
        kind: str = "text-lines",
        queue_name: str | None = None,
        now: datetime | None = None,
    ) -> ExtractResult:
        """
        Create an excerpt of parent_path.

        Args:
            parent_path: Parent note, absolute or workspace-relative
            range_start: First position of the excerpt in the parent
            range_end: Last position of the excerpt in the parent
            text: Excerpted text; for flashcards the question side
            kind: Extract type, which fixes the position kind
            queue_name: Queue for the new note; defaults to intermediate,
                        or spaced-standard for flashcards
            now: Creation time

        Returns:
            ExtractResult: Workspace-relative path of the new note

        Raises:
            DuplicateRangeError: If an excerpt with the same name exists
            InvalidRangeError: If the positions do not fit kind or parent
            NoteNotFoundError: If the parent is not a tracked note
        """
        now = now or datetime.now()
        timestamp = format_timestamp(now)
        parent_rel = self.to_relative(parent_path)

        self._check_positions(kind, range_start, range_end)
        target_queue = self._target_queue(kind, queue_name)

        with self.get_connection() as conn:
            parent = self.require_note(conn, parent_rel)
            chain = self.get_ancestor_chain(conn, parent_rel)
            rank_penalty = self.get_rank_penalty(conn)
            default_base = self.get_config_int(conn, "intermediate", "default_base")
            easiness = (
                self.get_config_float(conn, target_queue, "initial_ef")
                if target_queue in SPACED_QUEUES
                else parent.easiness
            )

        content, source_hash = self._excerpt_content(
            parent_rel, kind, range_start, range_end, text
        )

        folder = folder_for_top_level(chain[-1])
        name = generate_child_name(
            parent_rel,
            name_token(range_start),
            name_token(range_end),
            text or content,
            parent_is_top_level=len(chain) == 1,
        )
        child_rel = (PurePosixPath(folder) / name).as_posix()

        with self.get_connection() as conn:
            if self.get_note(conn, child_rel) is not None:
                raise DuplicateRangeError(child_rel)

        child_note = Note(
            library_id=self.library_id,
            relative_path=child_rel,
            added_time=timestamp,
            due_time=timestamp,
            rank=parent.rank,
            easiness=easiness,
            rotation_interval=parent.rotation_interval,
            intermediate_interval=default_base,
            last_queue_change=timestamp,
        )
        child_source = NoteSource(
            library_id=self.library_id,
            relative_path=child_rel,
            parent_path=parent_rel,
            extract_type=kind,
            range_start=range_start,
            range_end=range_end,
            source_hash=source_hash,
            created_time=timestamp,
        )

        folder_abs = self.to_absolute(folder)
        created_folder = not folder_abs.exists()
        folder_abs.mkdir(parents=True, exist_ok=True)
        child_abs = self.to_absolute(child_rel)

        try:
            with open(child_abs, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError as e:
            raise DuplicateRangeError(child_rel) from e

        try:
            with self.transaction() as conn:
                self._insert_child_records(
                    conn, child_note, child_source, target_queue, parent, rank_penalty
                )
        except Exception:
            self._discard_file(child_abs, folder_abs if created_folder else None)
            raise

        logger.info(f"Extracted {child_rel} from {parent_rel} into {target_queue}")
        return ExtractResult(ok=True, child_path=child_rel)

    def _insert_child_records(
        self,
        conn: sqlite3.Connection,
        child_note: Note,
        child_source: NoteSource,
        target_queue: str,
        parent: Note,
        rank_penalty: float,
    ):
        self.insert_note(conn, child_note)
        self.set_queue(conn, child_note.relative_path, target_queue, child_note.added_time)
        self.insert_note_source(conn, child_source)
        self.update_note(
            conn,
            parent.relative_path,
            extraction_count=parent.extraction_count + 1,
            rank=parent.rank + rank_penalty,
        )

    def _discard_file(self, child_abs: Path, created_folder: Path | None):
        try:
            child_abs.unlink()
            if created_folder is not None and not any(created_folder.iterdir()):
                created_folder.rmdir()
        except OSError as e:
            logger.error(f"Could not remove orphaned excerpt {child_abs}: {e}")
        else:
            logger.warning(f"Removed {child_abs} after its records failed to save")

    # ========================================
    # VALIDATION AND CONTENT
    # ========================================

    def _check_positions(self, kind: str, range_start: Position, range_end: Position):
        expected = POSITION_KIND_BY_TYPE.get(kind)
        if expected is None:
            raise InvalidRangeError(f"Unknown extract type: {kind}")
        if range_start.kind != expected or range_end.kind != expected:
            raise InvalidRangeError(f"{kind} excerpts need '{expected}' positions")
        if _position_key(range_end) < _position_key(range_start):
            raise InvalidRangeError("Excerpt range ends before it starts")

    def _target_queue(self, kind: str, queue_name: str | None) -> str:
        if kind == "flashcard":
            queue_name = queue_name or DEFAULT_FLASHCARD_QUEUE
            if queue_name not in SPACED_QUEUES:
                raise CallerError(f"Flashcards must go to a spaced queue, not {queue_name}")
            return queue_name

        queue_name = queue_name or DEFAULT_EXCERPT_QUEUE
        if queue_name not in QUEUE_CATALOG:
            raise UnknownQueueError(queue_name)
        return queue_name

    def _excerpt_content(
        self,
        parent_rel: str,
        kind: str,
        range_start: Position,
        range_end: Position,
        text: str,
    ) -> tuple[str, str | None]:
        """File content for the excerpt and its fingerprint, if it has one."""
        if kind == "text-lines":
            parent_text = self.read_note_text(parent_rel)
            if parent_text is None:
                raise InvalidRangeError(f"Cannot read parent {parent_rel}")
            window = extract_lines(parent_text, range_start.line, range_end.line)
            # A whole-line selection carries the newline that ends its last line
            if text and text.removesuffix("\n") != window:
                raise InvalidRangeError(
                    f"Selected text does not match lines "
                    f"{range_start.line}-{range_end.line} of {parent_rel}"
                )
            return window, fingerprint(window)

        if kind == "pdf-text":
            return text, fingerprint(text)

        if kind == "pdf-page":
            return self._read_pdf_pages(parent_rel, range_start.page, range_end.page), None

        if kind == "flashcard":
            parent_text = self.read_note_text(parent_rel)
            if parent_text is None:
                raise InvalidRangeError(f"Cannot read parent {parent_rel}")
            if range_end.offset > len(parent_text):
                raise InvalidRangeError(
                    f"Offset {range_end.offset} is past the end of {parent_rel}"
                )
            answer = parent_text[range_start.offset : range_end.offset]
            return text or answer, fingerprint(answer)

        # video-clip: caller supplied notes, no stable rendering to hash
        return text, None

    def _read_pdf_pages(self, parent_rel: str, first_page: int, last_page: int) -> str:
        pdf_path = self.to_absolute(parent_rel)
        try:
            with open(pdf_path, "rb") as file:
                reader = PdfReader(file)
                page_count = len(reader.pages)
                if last_page > page_count:
                    raise InvalidRangeError(
                        f"Page {last_page} is out of range. PDF has {page_count} pages."
                    )
                pages = [
                    reader.pages[number - 1].extract_text() or ""
                    for number in range(first_page, last_page + 1)
                ]
        except (OSError, PdfReadError) as e:
            raise InvalidRangeError(f"Cannot read PDF {parent_rel}: {e}") from e

        return "\n\n".join(pages)
