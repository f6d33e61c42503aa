"""
Review Queue Models

Pydantic models for notes, queue membership and review feedback.
"""

from typing import Literal

from pydantic import BaseModel, Field

# ========================================
# QUEUE CATALOG
# ========================================


QUEUE_NAMES = Literal[
    "new",
    "processing",
    "intermediate",
    "spaced-casual",
    "spaced-standard",
    "spaced-strict",
    "archived",
]

QUEUE_DESCRIPTIONS = {
    "new": "Newly added notes, presented first in, first out",
    "processing": "Notes being read, revisited on a fixed rotation",
    "intermediate": "Notes revisited at a reader-adjusted interval",
    "spaced-casual": "Spaced repetition aiming at about 80% retention",
    "spaced-standard": "Spaced repetition aiming at about 90% retention",
    "spaced-strict": "Spaced repetition aiming at about 95% retention",
    "archived": "Finished notes, never due",
}

QUEUE_CATALOG = list(QUEUE_DESCRIPTIONS)

SPACED_QUEUES = ("spaced-casual", "spaced-standard", "spaced-strict")

GLOBAL_CONFIG_QUEUE = "global"

DEFAULT_QUEUE_CONFIG = {
    "new": {"max_per_day": "10"},
    "processing": {"default_rotation": "3"},
    "intermediate": {"default_base": "7", "min_interval": "3"},
    "spaced-casual": {
        "initial_ef": "2.0",
        "min_ef": "1.2",
        "max_ef": "2.5",
        "first_interval": "1",
        "second_interval": "4",
        "fail_threshold": "2",
    },
    "spaced-standard": {
        "initial_ef": "2.5",
        "min_ef": "1.3",
        "max_ef": "2.5",
        "first_interval": "1",
        "second_interval": "6",
        "fail_threshold": "2",
    },
    "spaced-strict": {
        "initial_ef": "2.8",
        "min_ef": "1.5",
        "max_ef": "3.0",
        "first_interval": "1",
        "second_interval": "8",
        "fail_threshold": "3",
    },
    GLOBAL_CONFIG_QUEUE: {"rank_penalty": "5"},
}

# ========================================
# FEEDBACK
# ========================================


PROCESSING_FEEDBACK = ("skip", "viewed", "again")
INTERMEDIATE_FEEDBACK = ("decrease", "maintain", "increase")
SPACED_FEEDBACK_QUALITY = {"again": 0, "hard": 1, "good": 4, "easy": 5}

FEEDBACK_TOKENS = frozenset(
    PROCESSING_FEEDBACK + INTERMEDIATE_FEEDBACK + tuple(SPACED_FEEDBACK_QUALITY)
)

# Note defaults before any queue config applies
DEFAULT_EASINESS = 2.5
DEFAULT_RANK = 70.0
ARCHIVE_DAYS = 9999


# ========================================
# NOTE MODELS
# ========================================


class Note(BaseModel):
    """Full note record"""

    library_id: str
    relative_path: str
    added_time: str
    last_revised_time: str | None = None
    review_count: int = 0
    easiness: float = DEFAULT_EASINESS
    rank: float = DEFAULT_RANK
    interval: int = 1
    due_time: str
    rotation_interval: int = 3
    intermediate_interval: int = 7
    extraction_count: int = 0
    last_queue_change: str | None = None


class DueNote(Note):
    """A note together with the queue it sits in"""

    queue_name: QUEUE_NAMES
    folder_path: str | None = None


# ========================================
# REQUEST / RESULT MODELS
# ========================================


class NotePathRequest(BaseModel):
    relative_path: str = Field(..., min_length=1)


class FeedbackRequest(NotePathRequest):
    feedback: str = Field(..., min_length=1)


class MoveRequest(NotePathRequest):
    target_queue: str = Field(..., min_length=1)


class RankRequest(NotePathRequest):
    rank: float


class IntervalRequest(NotePathRequest):
    days: int


class QueueConfigValue(BaseModel):
    value: str


class AddToQueueResult(BaseModel):
    ok: bool
    already_exists: bool = False


class FeedbackResult(BaseModel):
    ok: bool = True
    next_due_in: int
    queue_name: QUEUE_NAMES
    message: str


class OperationResult(BaseModel):
    ok: bool = True
    message: str | None = None
