"""
Error taxonomy for the scheduling and lineage services.

- Caller errors: rejected before any record is touched
- Store access errors: a workspace or central store could not be used
- Lineage integrity errors: stored parent chains that cannot be resolved

Range drift (moved / lost) is reported as a status and never raised.
"""


class IncreadError(Exception):
    """Base class for all service errors."""


class CallerError(IncreadError):
    """The request itself is invalid; nothing was mutated."""


class UnknownQueueError(CallerError):
    def __init__(self, queue_name: str):
        super().__init__(f"Unknown queue: {queue_name}")
        self.queue_name = queue_name


class InvalidFeedbackError(CallerError):
    def __init__(self, queue_name: str, feedback: str):
        super().__init__(f"Invalid feedback '{feedback}' for queue '{queue_name}'")
        self.queue_name = queue_name
        self.feedback = feedback


class MissingQueueConfigError(CallerError):
    def __init__(self, queue_name: str, config_key: str):
        super().__init__(f"Missing config '{config_key}' for queue '{queue_name}'")
        self.queue_name = queue_name
        self.config_key = config_key


class InvalidQueueConfigError(CallerError):
    def __init__(self, queue_name: str, config_key: str, config_value: str):
        super().__init__(
            f"Config '{config_key}' for queue '{queue_name}' must be a number, got '{config_value}'"
        )
        self.queue_name = queue_name
        self.config_key = config_key
        self.config_value = config_value


class DuplicateRangeError(CallerError):
    def __init__(self, child_path: str):
        super().__init__(f"Excerpt already exists: {child_path}")
        self.child_path = child_path


class InvalidRangeError(CallerError):
    pass


class NoteNotFoundError(CallerError):
    def __init__(self, relative_path: str):
        super().__init__(f"Note not found: {relative_path}")
        self.relative_path = relative_path


class WorkspaceNotFoundError(CallerError):
    pass


class InvalidPathError(CallerError):
    """A note path that does not resolve inside the workspace."""


class StoreAccessError(IncreadError):
    """A store is missing, unreadable or corrupt."""


class LineageIntegrityError(IncreadError):
    """Stored lineage is deeper than allowed or loops back on itself."""
