"""
Queue Scheduler Module

Owns queue membership and due times for the notes of one workspace. Each
queue kind updates a note differently after a review:

- new: first look; anything but "skip" promotes the note to processing
- processing: fixed rotation interval per note
- intermediate: reader-steered interval, scaled by 1.5 with +/-10% jitter
- spaced-*: SM-2 variant tuned per queue through queue_config
- archived: terminal, never due

Every review is read, validated and written inside one transaction; an
invalid request raises before anything is written.
"""

import logging
import math
import random
import sqlite3
from datetime import datetime, timedelta

from ..errors import CallerError, InvalidFeedbackError, NoteNotFoundError, UnknownQueueError
from ..models.queue_models import (
    ARCHIVE_DAYS,
    DEFAULT_EASINESS,
    DEFAULT_RANK,
    FEEDBACK_TOKENS,
    GLOBAL_CONFIG_QUEUE,
    INTERMEDIATE_FEEDBACK,
    QUEUE_CATALOG,
    SPACED_FEEDBACK_QUALITY,
    SPACED_QUEUES,
    AddToQueueResult,
    DueNote,
    FeedbackResult,
    Note,
    OperationResult,
)
from ..models.workspace_models import Workspace
from .base_database_service import format_timestamp
from .note_repository import NoteRepository, parse_config_number

# Configure logger for this module
logger = logging.getLogger(__name__)

INTERMEDIATE_RATIO = 1.5
JITTER_FRACTION = 0.1
MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 365


def sm2_delta(quality: int) -> float:
    return 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)


def next_due_message(days: int) -> str:
    return f"Next review in {days} day{'' if days == 1 else 's'}"


class QueueScheduler(NoteRepository):
    """
    Review scheduling for one workspace.

    Args:
        workspace: The library whose store is scheduled
        rng: Source of interval jitter; pass a seeded Random in tests
    """

    def __init__(self, workspace: Workspace, rng: random.Random | None = None):
        super().__init__(workspace)
        self.rng = rng or random.Random()

    def _due_in(self, now: datetime, days: int) -> str:
        return format_timestamp(now + timedelta(days=days))

    def _check_queue(self, queue_name: str, allow_global: bool = False):
        if queue_name in QUEUE_CATALOG:
            return
        if allow_global and queue_name == GLOBAL_CONFIG_QUEUE:
            return
        raise UnknownQueueError(queue_name)

    # ========================================
    # QUEUE ENTRY AND MOVES
    # ========================================

    def add_to_queue(self, path: str, now: datetime | None = None) -> AddToQueueResult:
        """
        Start tracking a note in the new queue.

        Returns:
            AddToQueueResult: ok=False with already_exists=True if the note
            is tracked already; nothing is changed in that case
        """
        now = now or datetime.now()
        relative_path = self.to_relative(path)
        timestamp = format_timestamp(now)

        with self.transaction() as conn:
            if self.get_note(conn, relative_path) is not None:
                return AddToQueueResult(ok=False, already_exists=True)

            note = Note(
                library_id=self.library_id,
                relative_path=relative_path,
                added_time=timestamp,
                due_time=timestamp,
                rotation_interval=self.get_config_int(conn, "processing", "default_rotation"),
                intermediate_interval=self.get_config_int(conn, "intermediate", "default_base"),
            )
            self.insert_note(conn, note)
            self.set_queue(conn, relative_path, "new", timestamp)

        logger.info(f"Added {relative_path} to the new queue")
        return AddToQueueResult(ok=True)

    def move_to_queue(
        self, path: str, target_queue: str, now: datetime | None = None
    ) -> OperationResult:
        """
        Move a note to another queue and reset the state that queue uses.

        Raises:
            UnknownQueueError: If target_queue is not in the catalog
            NoteNotFoundError: If the note is not tracked
        """
        self._check_queue(target_queue)
        now = now or datetime.now()
        relative_path = self.to_relative(path)
        timestamp = format_timestamp(now)

        with self.transaction() as conn:
            note = self.require_note(conn, relative_path)
            updates = {"last_queue_change": timestamp}

            if target_queue == "intermediate":
                updates["intermediate_interval"] = self.get_config_int(
                    conn, "intermediate", "default_base"
                )
                updates["due_time"] = timestamp
            elif target_queue in SPACED_QUEUES:
                updates["easiness"] = self.get_config_float(conn, target_queue, "initial_ef")
                updates["review_count"] = 0
                updates["interval"] = 1
                updates["due_time"] = timestamp
            elif target_queue == "archived":
                updates["due_time"] = self._due_in(now, ARCHIVE_DAYS)
            elif target_queue == "processing":
                updates["due_time"] = self._due_in(now, note.rotation_interval)

            self.update_note(conn, relative_path, **updates)
            self.set_queue(conn, relative_path, target_queue, timestamp)

        logger.info(f"Moved {relative_path} to {target_queue}")
        return OperationResult(ok=True, message=f"Moved to {target_queue}")

    # ========================================
    # REVIEW FEEDBACK
    # ========================================

    def record_feedback(
        self, path: str, feedback: str, now: datetime | None = None
    ) -> FeedbackResult:
        """
        Apply one review to a note according to the queue it is in.

        Raises:
            InvalidFeedbackError: If feedback is not valid for the note's queue
            UnknownQueueError: If the note's membership names no known queue
            NoteNotFoundError: If the note is not tracked
        """
        now = now or datetime.now()
        relative_path = self.to_relative(path)

        with self.transaction() as conn:
            note = self.require_note(conn, relative_path)
            queue_name = self.get_queue_name(conn, relative_path)
            if queue_name is None:
                raise NoteNotFoundError(relative_path)
            if feedback not in FEEDBACK_TOKENS:
                raise InvalidFeedbackError(queue_name, feedback)

            if queue_name == "new":
                updates, days, next_queue = self._review_new(note, feedback, now)
            elif queue_name == "processing":
                updates, days, next_queue = self._review_processing(note, feedback, now)
            elif queue_name == "intermediate":
                updates, days, next_queue = self._review_intermediate(conn, note, feedback, now)
            elif queue_name in SPACED_QUEUES:
                updates, days, next_queue = self._review_spaced(
                    conn, note, queue_name, feedback, now
                )
            elif queue_name == "archived":
                raise CallerError("Cannot review archived notes")
            else:
                raise UnknownQueueError(queue_name)

            self.update_note(conn, relative_path, **updates)
            if next_queue != queue_name:
                self.set_queue(conn, relative_path, next_queue, format_timestamp(now))

        logger.info(
            f"Recorded '{feedback}' for {relative_path} in {queue_name}; due in {days} days"
        )
        return FeedbackResult(
            next_due_in=days, queue_name=next_queue, message=next_due_message(days)
        )

    def _review_new(self, note: Note, feedback: str, now: datetime):
        timestamp = format_timestamp(now)
        if feedback == "skip":
            return {"due_time": self._due_in(now, 1), "last_revised_time": timestamp}, 1, "new"

        days = note.rotation_interval
        updates = {
            "due_time": self._due_in(now, days),
            "last_revised_time": timestamp,
            "last_queue_change": timestamp,
        }
        return updates, days, "processing"

    def _review_processing(self, note: Note, feedback: str, now: datetime):
        if feedback == "skip":
            days = 1
        elif feedback == "again":
            days = 0
        else:
            days = note.rotation_interval

        updates = {
            "due_time": self._due_in(now, days),
            "last_revised_time": format_timestamp(now),
        }
        return updates, days, "processing"

    def _review_intermediate(
        self, conn: sqlite3.Connection, note: Note, feedback: str, now: datetime
    ):
        if feedback not in INTERMEDIATE_FEEDBACK:
            raise InvalidFeedbackError("intermediate", feedback)
        min_interval = self.get_config_int(conn, "intermediate", "min_interval")

        interval = note.intermediate_interval
        if feedback == "decrease":
            interval = math.floor(interval / INTERMEDIATE_RATIO)
        elif feedback == "increase":
            interval = math.floor(interval * INTERMEDIATE_RATIO)

        jitter = round(interval * self.rng.uniform(-JITTER_FRACTION, JITTER_FRACTION))
        interval = max(min_interval, interval + jitter)

        updates = {
            "intermediate_interval": interval,
            "due_time": self._due_in(now, interval),
            "last_revised_time": format_timestamp(now),
        }
        return updates, interval, "intermediate"

    def _review_spaced(
        self,
        conn: sqlite3.Connection,
        note: Note,
        queue_name: str,
        feedback: str,
        now: datetime,
    ):
        if feedback not in SPACED_FEEDBACK_QUALITY:
            raise InvalidFeedbackError(queue_name, feedback)
        quality = SPACED_FEEDBACK_QUALITY[feedback]

        min_ef = self.get_config_float(conn, queue_name, "min_ef")
        max_ef = self.get_config_float(conn, queue_name, "max_ef")
        first_interval = self.get_config_int(conn, queue_name, "first_interval")
        second_interval = self.get_config_int(conn, queue_name, "second_interval")
        fail_threshold = self.get_config_int(conn, queue_name, "fail_threshold")

        easiness = note.easiness
        rank = note.rank
        if quality < fail_threshold:
            interval = 1
        else:
            easiness = min(max(easiness + sm2_delta(quality), min_ef), max_ef)
            rank += quality
            if note.review_count == 0:
                interval = first_interval
            elif note.review_count == 1:
                interval = second_interval
            else:
                interval = math.floor(note.interval * easiness)

        updates = {
            "easiness": easiness,
            "rank": rank,
            "interval": interval,
            "review_count": note.review_count + 1,
            "last_revised_time": format_timestamp(now),
            "due_time": self._due_in(now, interval),
        }
        return updates, interval, queue_name

    # ========================================
    # DUE SELECTION
    # ========================================

    def _to_due_notes(self, rows: list[sqlite3.Row]) -> list[DueNote]:
        return [
            DueNote(**dict(row), folder_path=self.workspace.folder_path) for row in rows
        ]

    def get_due_today(
        self, limit: int | None = None, now: datetime | None = None
    ) -> list[DueNote]:
        """
        Notes to review today: the oldest new notes up to max_per_day, then
        every other non-archived note due by today ordered by due time and
        rank. limit truncates the combined list.
        """
        today = (now or datetime.now()).strftime("%Y-%m-%d")

        with self.get_connection() as conn:
            max_per_day = self.get_config_int(conn, "new", "max_per_day")
            new_rows = conn.execute(
                """
                SELECT n.*, m.queue_name FROM note n
                JOIN queue_membership m
                  ON m.library_id = n.library_id AND m.relative_path = n.relative_path
                WHERE n.library_id = ? AND m.queue_name = 'new'
                  AND date(n.due_time) <= date(?)
                ORDER BY n.added_time
                LIMIT ?
                """,
                (self.library_id, today, max_per_day),
            ).fetchall()
            due_rows = conn.execute(
                """
                SELECT n.*, m.queue_name FROM note n
                JOIN queue_membership m
                  ON m.library_id = n.library_id AND m.relative_path = n.relative_path
                WHERE n.library_id = ? AND m.queue_name NOT IN ('new', 'archived')
                  AND date(n.due_time) <= date(?)
                ORDER BY n.due_time, n.rank
                """,
                (self.library_id, today),
            ).fetchall()

        due_notes = self._to_due_notes(new_rows) + self._to_due_notes(due_rows)
        return due_notes if limit is None else due_notes[:limit]

    def get_all_notes(self) -> list[DueNote]:
        """Every non-archived note, including those due in the future."""
        rows = self.execute_query(
            """
            SELECT n.*, m.queue_name FROM note n
            JOIN queue_membership m
              ON m.library_id = n.library_id AND m.relative_path = n.relative_path
            WHERE n.library_id = ? AND m.queue_name != 'archived'
            ORDER BY n.due_time, n.rank
            """,
            (self.library_id,),
            fetch_all=True,
        )
        return self._to_due_notes(rows)

    # ========================================
    # NOTE MAINTENANCE
    # ========================================

    def forget(self, path: str, now: datetime | None = None) -> OperationResult:
        """Reset a note's review history; its lineage record is kept."""
        timestamp = format_timestamp(now or datetime.now())
        relative_path = self.to_relative(path)

        with self.transaction() as conn:
            self.update_note(
                conn,
                relative_path,
                last_revised_time=None,
                review_count=0,
                easiness=DEFAULT_EASINESS,
                rank=DEFAULT_RANK,
                interval=1,
                due_time=timestamp,
            )

        logger.info(f"Reset review history of {relative_path}")
        return OperationResult(ok=True, message="Review history reset")

    def update_rank(self, path: str, rank: float) -> OperationResult:
        relative_path = self.to_relative(path)
        with self.transaction() as conn:
            self.update_note(conn, relative_path, rank=rank)
        return OperationResult(ok=True)

    def _clamp_days(self, days: int) -> int:
        return min(max(days, MIN_INTERVAL_DAYS), MAX_INTERVAL_DAYS)

    def update_rotation_interval(self, path: str, days: int) -> OperationResult:
        relative_path = self.to_relative(path)
        with self.transaction() as conn:
            self.update_note(conn, relative_path, rotation_interval=self._clamp_days(days))
        return OperationResult(ok=True)

    def update_intermediate_interval(self, path: str, days: int) -> OperationResult:
        relative_path = self.to_relative(path)
        with self.transaction() as conn:
            self.update_note(conn, relative_path, intermediate_interval=self._clamp_days(days))
        return OperationResult(ok=True)

    def get_note_queue(self, path: str) -> str:
        relative_path = self.to_relative(path)
        with self.get_connection() as conn:
            self.require_note(conn, relative_path)
            queue_name = self.get_queue_name(conn, relative_path)
        if queue_name is None:
            raise NoteNotFoundError(relative_path)
        return queue_name

    # ========================================
    # QUEUE CONFIG
    # ========================================

    def get_queue_settings(self, queue_name: str) -> dict[str, str]:
        self._check_queue(queue_name, allow_global=True)
        with self.get_connection() as conn:
            return self.get_queue_config(conn, queue_name)

    def set_queue_setting(self, queue_name: str, config_key: str, config_value: str):
        self._check_queue(queue_name, allow_global=True)
        parse_config_number(queue_name, config_key, config_value)
        with self.transaction() as conn:
            self.set_config_value(conn, queue_name, config_key, config_value)
        logger.info(f"Set {queue_name}.{config_key} = {config_value}")
