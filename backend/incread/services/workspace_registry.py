"""
Workspace Registry Module

A workspace is a folder holding notes plus its own store at
<folder>/.incread/db.sqlite. The central registry lists every workspace
opened so far, so due notes can be gathered across all of them without
the caller knowing where they live. Each workspace store is its own
failure domain: one broken store is skipped, not fatal.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path

from ..config import WORKSPACE_STORE_DIR, WORKSPACE_STORE_FILE, workspace_store_path
from ..errors import IncreadError, StoreAccessError, WorkspaceNotFoundError
from ..models.queue_models import DEFAULT_QUEUE_CONFIG, QUEUE_DESCRIPTIONS, DueNote
from ..models.workspace_models import Workspace, WorkspaceRegistryEntry
from .base_database_service import BaseDatabaseService, format_timestamp
from .migration_service import MigrationService
from .queue_scheduler import QueueScheduler

# Configure logger for this module
logger = logging.getLogger(__name__)


def find_workspace_root(path: str | Path) -> Path | None:
    """Nearest folder at or above path that holds a workspace store."""
    current = Path(path).expanduser().resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / WORKSPACE_STORE_DIR / WORKSPACE_STORE_FILE).is_file():
            return candidate
    return None


class WorkspaceStore(BaseDatabaseService):
    """Creates or opens the store inside one workspace folder."""

    def __init__(self, folder_path: str | Path):
        self.folder_path = Path(folder_path).expanduser().resolve()
        super().__init__(str(workspace_store_path(self.folder_path)))

    def initialize(self, now: datetime | None = None) -> Workspace:
        """
        Apply migrations and, for a new store, create the library with its
        queue catalog and default queue config.

        Raises:
            StoreAccessError: If migrations cannot be applied
        """
        if not MigrationService(self.db_path, "workspace").apply_migrations():
            raise StoreAccessError(f"Could not migrate workspace store {self.db_path}")

        timestamp = format_timestamp(now or datetime.now())
        with self.transaction() as conn:
            row = conn.execute("SELECT library_id, library_name FROM library").fetchone()
            if row is not None:
                return Workspace(
                    library_id=row["library_id"],
                    folder_path=str(self.folder_path),
                    library_name=row["library_name"],
                )

            library_id = str(uuid.uuid4())
            library_name = self.folder_path.name
            conn.execute(
                "INSERT INTO library (library_id, library_name, created_time) VALUES (?, ?, ?)",
                (library_id, library_name, timestamp),
            )
            conn.executemany(
                """
                INSERT INTO review_queue (library_id, queue_name, description, created_time)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (library_id, queue_name, description, timestamp)
                    for queue_name, description in QUEUE_DESCRIPTIONS.items()
                ],
            )
            conn.executemany(
                """
                INSERT INTO queue_config (library_id, queue_name, config_key, config_value)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (library_id, queue_name, key, value)
                    for queue_name, values in DEFAULT_QUEUE_CONFIG.items()
                    for key, value in values.items()
                ],
            )

        logger.info(f"Created library {library_id} in {self.folder_path}")
        return Workspace(
            library_id=library_id,
            folder_path=str(self.folder_path),
            library_name=library_name,
        )


class WorkspaceRegistry(BaseDatabaseService):
    """
    Service class for the central workspace registry.

    This class provides database operations for:
    - Opening (creating if needed) workspaces and recording each visit
    - Listing recently opened workspaces
    - Gathering due notes from every registered workspace
    """

    def __init__(self, db_path: str):
        super().__init__(db_path)
        if not MigrationService(db_path, "central").apply_migrations():
            raise StoreAccessError(f"Could not migrate central store {db_path}")

    def _row_to_entry(self, row) -> WorkspaceRegistryEntry:
        return WorkspaceRegistryEntry(**dict(row))

    # ========================================
    # OPEN / RECORD
    # ========================================

    def open_workspace(self, folder_path: str | Path, now: datetime | None = None) -> Workspace:
        """
        Open the workspace in folder_path, creating its store on first use.

        A failure to update the central registry is logged; the workspace
        itself is still returned.

        Raises:
            WorkspaceNotFoundError: If folder_path is not a directory
        """
        folder = Path(folder_path).expanduser()
        if not folder.is_dir():
            raise WorkspaceNotFoundError(f"Not a folder: {folder_path}")

        workspace = WorkspaceStore(folder).initialize(now)
        try:
            self.record_workspace(workspace, now)
        except StoreAccessError as e:
            logger.error(f"Could not register workspace {workspace.folder_path}: {e}")
        return workspace

    def record_workspace(self, workspace: Workspace, now: datetime | None = None):
        """Insert the workspace or bump its last_opened and open_count."""
        timestamp = format_timestamp(now or datetime.now())
        folder = Path(workspace.folder_path)

        with self.transaction() as conn:
            # A store recreated in the same folder gets a new library id
            conn.execute(
                "DELETE FROM workspace_registry WHERE folder_path = ? AND library_id != ?",
                (str(folder), workspace.library_id),
            )
            conn.execute(
                """
                INSERT INTO workspace_registry
                (library_id, folder_path, folder_name, store_path, first_opened, last_opened, open_count)
                VALUES (?, ?, ?, ?, ?, ?, 1)
                ON CONFLICT(library_id) DO UPDATE SET
                    folder_path = excluded.folder_path,
                    folder_name = excluded.folder_name,
                    store_path = excluded.store_path,
                    last_opened = excluded.last_opened,
                    open_count = workspace_registry.open_count + 1
                """,
                (
                    workspace.library_id,
                    str(folder),
                    folder.name,
                    str(workspace.store_path),
                    timestamp,
                    timestamp,
                ),
            )
        logger.info(f"Recorded workspace {folder}")

    # ========================================
    # LOOKUP
    # ========================================

    def get_recent_workspaces(self, limit: int = 10) -> list[WorkspaceRegistryEntry]:
        rows = self.execute_query(
            "SELECT * FROM workspace_registry ORDER BY last_opened DESC LIMIT ?",
            (limit,),
            fetch_all=True,
        )
        return [self._row_to_entry(row) for row in rows]

    def get_entry(self, library_id: str) -> WorkspaceRegistryEntry | None:
        row = self.execute_query(
            "SELECT * FROM workspace_registry WHERE library_id = ?",
            (library_id,),
            fetch_one=True,
        )
        return self._row_to_entry(row) if row else None

    def get_workspace(self, library_id: str) -> Workspace:
        """
        Raises:
            WorkspaceNotFoundError: If the library is not registered
        """
        entry = self.get_entry(library_id)
        if entry is None:
            raise WorkspaceNotFoundError(f"Unknown library: {library_id}")
        return Workspace(
            library_id=entry.library_id,
            folder_path=entry.folder_path,
            library_name=entry.folder_name,
        )

    # ========================================
    # MAINTENANCE
    # ========================================

    def update_workspace_stats(
        self, library_id: str, total_files: int, files_due_today: int
    ) -> bool:
        updated = self.execute_query(
            """
            UPDATE workspace_registry SET total_files = ?, files_due_today = ?
            WHERE library_id = ?
            """,
            (total_files, files_due_today, library_id),
        )
        return updated > 0

    def refresh_stats(self, library_id: str, now: datetime | None = None) -> WorkspaceRegistryEntry:
        """Recount a workspace's tracked and due notes from its own store."""
        scheduler = QueueScheduler(self.get_workspace(library_id))
        total_files = scheduler.execute_query(
            "SELECT COUNT(*) FROM note WHERE library_id = ?",
            (library_id,),
            fetch_one=True,
        )[0]
        files_due_today = len(scheduler.get_due_today(now=now))
        self.update_workspace_stats(library_id, total_files, files_due_today)
        return self.get_entry(library_id)

    def remove_workspace(self, library_id: str) -> bool:
        """Forget a workspace centrally; its folder and store are untouched."""
        removed = self.execute_query(
            "DELETE FROM workspace_registry WHERE library_id = ?", (library_id,)
        )
        if removed:
            logger.info(f"Removed workspace {library_id} from registry")
        return removed > 0

    # ========================================
    # CROSS-WORKSPACE SELECTION
    # ========================================

    def get_all_due_across_libraries(
        self, now: datetime | None = None, include_future: bool = False
    ) -> list[DueNote]:
        """
        Due notes of every registered workspace, ordered by due date then
        rank. Workspaces whose store is missing or unreadable are skipped.
        """
        notes = []
        for entry in self.get_recent_workspaces(limit=-1):
            if not Path(entry.store_path).is_file():
                logger.warning(f"Skipping {entry.folder_path}: store not found")
                continue

            workspace = Workspace(
                library_id=entry.library_id,
                folder_path=entry.folder_path,
                library_name=entry.folder_name,
            )
            try:
                scheduler = QueueScheduler(workspace)
                if include_future:
                    notes.extend(scheduler.get_all_notes())
                else:
                    notes.extend(scheduler.get_due_today(now=now))
            except IncreadError as e:
                logger.warning(f"Skipping {entry.folder_path}: {e}")

        notes.sort(key=lambda note: (note.due_time[:10], note.rank))
        return notes
