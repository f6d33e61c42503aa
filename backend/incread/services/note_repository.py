"""
Note Repository Module

Record-level access to one workspace store: notes, queue membership, queue
config and note_source lineage rows. Every helper takes the connection it
runs on so that callers can compose several of them inside one
transaction().
"""

import logging
import math
import sqlite3
from pathlib import Path, PurePosixPath
from typing import Any

from ..errors import (
    InvalidPathError,
    InvalidQueueConfigError,
    MissingQueueConfigError,
    NoteNotFoundError,
)
from ..models.queue_models import GLOBAL_CONFIG_QUEUE, Note
from ..models.source_models import NoteSource, decode_position, encode_position
from ..models.workspace_models import Workspace
from .base_database_service import BaseDatabaseService

# Configure logger for this module
logger = logging.getLogger(__name__)

NOTE_COLUMNS = (
    "added_time",
    "last_revised_time",
    "review_count",
    "easiness",
    "rank",
    "interval",
    "due_time",
    "rotation_interval",
    "intermediate_interval",
    "extraction_count",
    "last_queue_change",
)


def parse_config_number(queue_name: str, config_key: str, config_value: str) -> float:
    """Queue config values are stored as text but must read as finite numbers."""
    try:
        number = float(config_value)
    except (TypeError, ValueError) as e:
        raise InvalidQueueConfigError(queue_name, config_key, config_value) from e
    if not math.isfinite(number):
        raise InvalidQueueConfigError(queue_name, config_key, config_value)
    return number


class NoteRepository(BaseDatabaseService):
    """
    Base for services operating on a single workspace store.

    Holds the workspace (library id and root folder) and converts between
    paths on disk and the POSIX relative paths used as record keys.
    """

    def __init__(self, workspace: Workspace):
        super().__init__(str(workspace.store_path))
        self.workspace = workspace
        self.library_id = workspace.library_id

    # ========================================
    # PATHS
    # ========================================

    def to_relative(self, path: str | Path) -> str:
        """Normalize a caller path (absolute or relative) to a record key."""
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                candidate = candidate.resolve().relative_to(self.workspace.root.resolve())
            except ValueError as e:
                raise InvalidPathError(f"{path} is outside workspace {self.workspace.root}") from e
        if not candidate.parts or ".." in candidate.parts:
            raise InvalidPathError(f"{path} does not name a note inside the workspace")
        return PurePosixPath(*candidate.parts).as_posix()

    def to_absolute(self, relative_path: str) -> Path:
        return self.workspace.root / PurePosixPath(relative_path)

    def read_note_text(self, relative_path: str) -> str | None:
        """Current file content of a note, or None if it cannot be read."""
        try:
            return self.to_absolute(relative_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {relative_path}: {e}")
            return None

    # ========================================
    # NOTE CRUD OPERATIONS
    # ========================================

    def _row_to_note(self, row: sqlite3.Row) -> Note:
        return Note(**{key: row[key] for key in row.keys() if key in Note.model_fields})

    def get_note(self, conn: sqlite3.Connection, relative_path: str) -> Note | None:
        row = conn.execute(
            "SELECT * FROM note WHERE library_id = ? AND relative_path = ?",
            (self.library_id, relative_path),
        ).fetchone()
        return self._row_to_note(row) if row else None

    def require_note(self, conn: sqlite3.Connection, relative_path: str) -> Note:
        note = self.get_note(conn, relative_path)
        if note is None:
            raise NoteNotFoundError(relative_path)
        return note

    def insert_note(self, conn: sqlite3.Connection, note: Note):
        columns = ("library_id", "relative_path") + NOTE_COLUMNS
        values = [getattr(note, column) for column in columns]
        placeholders = ", ".join("?" for _ in columns)
        conn.execute(
            f"INSERT INTO note ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )

    def update_note(self, conn: sqlite3.Connection, relative_path: str, **fields: Any):
        """Update the given note columns; unknown column names are rejected."""
        unknown = set(fields) - set(NOTE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown note columns: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ?" for column in fields)
        cursor = conn.execute(
            f"UPDATE note SET {assignments} WHERE library_id = ? AND relative_path = ?",
            (*fields.values(), self.library_id, relative_path),
        )
        if cursor.rowcount == 0:
            raise NoteNotFoundError(relative_path)

    # ========================================
    # QUEUE MEMBERSHIP
    # ========================================

    def get_queue_name(self, conn: sqlite3.Connection, relative_path: str) -> str | None:
        row = conn.execute(
            "SELECT queue_name FROM queue_membership WHERE library_id = ? AND relative_path = ?",
            (self.library_id, relative_path),
        ).fetchone()
        return row["queue_name"] if row else None

    def set_queue(
        self, conn: sqlite3.Connection, relative_path: str, queue_name: str, timestamp: str
    ):
        """Place a note in a queue, replacing any previous membership."""
        conn.execute(
            """
            INSERT INTO queue_membership (library_id, relative_path, queue_name, added_time)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(library_id, relative_path)
            DO UPDATE SET queue_name = excluded.queue_name, added_time = excluded.added_time
            """,
            (self.library_id, relative_path, queue_name, timestamp),
        )

    # ========================================
    # QUEUE CONFIG
    # ========================================

    def get_queue_config(self, conn: sqlite3.Connection, queue_name: str) -> dict[str, str]:
        rows = conn.execute(
            "SELECT config_key, config_value FROM queue_config WHERE library_id = ? AND queue_name = ?",
            (self.library_id, queue_name),
        ).fetchall()
        return {row["config_key"]: row["config_value"] for row in rows}

    def get_config_value(self, conn: sqlite3.Connection, queue_name: str, config_key: str) -> str:
        row = conn.execute(
            """
            SELECT config_value FROM queue_config
            WHERE library_id = ? AND queue_name = ? AND config_key = ?
            """,
            (self.library_id, queue_name, config_key),
        ).fetchone()
        if row is None:
            raise MissingQueueConfigError(queue_name, config_key)
        return row["config_value"]

    def get_config_int(self, conn: sqlite3.Connection, queue_name: str, config_key: str) -> int:
        return int(self.get_config_float(conn, queue_name, config_key))

    def get_config_float(self, conn: sqlite3.Connection, queue_name: str, config_key: str) -> float:
        config_value = self.get_config_value(conn, queue_name, config_key)
        return parse_config_number(queue_name, config_key, config_value)

    def get_rank_penalty(self, conn: sqlite3.Connection) -> float:
        return self.get_config_float(conn, GLOBAL_CONFIG_QUEUE, "rank_penalty")

    def set_config_value(
        self, conn: sqlite3.Connection, queue_name: str, config_key: str, config_value: str
    ):
        conn.execute(
            """
            INSERT OR REPLACE INTO queue_config (library_id, queue_name, config_key, config_value)
            VALUES (?, ?, ?, ?)
            """,
            (self.library_id, queue_name, config_key, str(config_value)),
        )

    # ========================================
    # NOTE SOURCE (LINEAGE) RECORDS
    # ========================================

    def _row_to_source(self, row: sqlite3.Row) -> NoteSource:
        extract_type = row["extract_type"]
        return NoteSource(
            library_id=row["library_id"],
            relative_path=row["relative_path"],
            parent_path=row["parent_path"],
            extract_type=extract_type,
            range_start=decode_position(extract_type, row["range_start"]),
            range_end=decode_position(extract_type, row["range_end"]),
            source_hash=row["source_hash"],
            created_time=row["created_time"],
        )

    def get_note_source(self, conn: sqlite3.Connection, relative_path: str) -> NoteSource | None:
        row = conn.execute(
            "SELECT * FROM note_source WHERE library_id = ? AND relative_path = ?",
            (self.library_id, relative_path),
        ).fetchone()
        return self._row_to_source(row) if row else None

    def get_child_sources(self, conn: sqlite3.Connection, parent_path: str) -> list[NoteSource]:
        rows = conn.execute(
            "SELECT * FROM note_source WHERE library_id = ? AND parent_path = ?",
            (self.library_id, parent_path),
        ).fetchall()
        return [self._row_to_source(row) for row in rows]

    def insert_note_source(self, conn: sqlite3.Connection, source: NoteSource):
        conn.execute(
            """
            INSERT INTO note_source
            (library_id, relative_path, parent_path, extract_type, range_start, range_end, source_hash, created_time)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self.library_id,
                source.relative_path,
                source.parent_path,
                source.extract_type,
                encode_position(source.range_start),
                encode_position(source.range_end),
                source.source_hash,
                source.created_time,
            ),
        )

    def update_source_range(
        self, conn: sqlite3.Connection, relative_path: str, range_start: str, range_end: str
    ) -> bool:
        cursor = conn.execute(
            """
            UPDATE note_source SET range_start = ?, range_end = ?
            WHERE library_id = ? AND relative_path = ?
            """,
            (range_start, range_end, self.library_id, relative_path),
        )
        return cursor.rowcount > 0
