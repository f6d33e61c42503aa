"""
Database Migration Service

Applies numbered SQL files to a store and records which ones ran. Workspace
stores and the central registry each have their own migrations directory.
Before an existing store is migrated a timestamped backup copy is taken.
"""

import logging
import shutil
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path

from ..config import MIGRATIONS_DIR

# Configure logger for this module
logger = logging.getLogger(__name__)


class MigrationService:
    """
    Service for managing database migrations.

    Migration files are applied in file-name order and tracked in the
    schema_migrations table so each runs exactly once.
    """

    def __init__(self, db_path: str, store_kind: str = "workspace"):
        """
        Initialize the migration service.

        Args:
            db_path (str): Path to the SQLite database file
            store_kind (str): Subdirectory of migrations/ to apply
                              ("workspace" or "central")
        """
        self.db_path = db_path
        self.migrations_dir = MIGRATIONS_DIR / store_kind
        self._ensure_migrations_table()

    def _connect(self):
        return closing(sqlite3.connect(self.db_path))

    def _ensure_migrations_table(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    migration_name TEXT UNIQUE NOT NULL,
                    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def _get_applied_migrations(self) -> set[str]:
        with self._connect() as conn:
            cursor = conn.execute("SELECT migration_name FROM schema_migrations")
            return {row[0] for row in cursor.fetchall()}

    def _get_pending_migrations(self) -> list[str]:
        """
        Get list of migration files that haven't been applied yet.

        Returns:
            list[str]: Sorted list of pending migration file names
        """
        if not self.migrations_dir.exists():
            logger.warning(f"Migrations directory not found: {self.migrations_dir}")
            return []

        migration_files = sorted(
            f.name for f in self.migrations_dir.glob("*.sql") if f.is_file()
        )
        applied_migrations = self._get_applied_migrations()
        return [m for m in migration_files if m not in applied_migrations]

    def _split_statements(self, migration_sql: str) -> list[str]:
        statements = []
        for raw_statement in migration_sql.split(";"):
            # Drop comment-only lines, keep the SQL
            lines = [
                line.strip()
                for line in raw_statement.split("\n")
                if line.strip() and not line.strip().startswith("--")
            ]
            clean_statement = " ".join(lines).strip()
            if clean_statement:
                statements.append(clean_statement)
        return statements

    def _has_user_tables(self) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM sqlite_master "
                "WHERE type = 'table' AND name NOT IN ('schema_migrations', 'sqlite_sequence')"
            )
            return cursor.fetchone()[0] > 0

    def backup_database(self) -> Path:
        """
        Copy the store file next to itself before it is migrated.

        Returns:
            Path: Location of the backup copy
        """
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_path = Path(f"{self.db_path}.backup-{stamp}")
        shutil.copy2(self.db_path, backup_path)
        logger.info(f"Backed up {self.db_path} to {backup_path}")
        return backup_path

    def _execute_migration(self, migration_file: str):
        """
        Execute a single migration file and record it, in one transaction.

        Raises:
            sqlite3.Error: If any statement fails; nothing is recorded
        """
        migration_path = self.migrations_dir / migration_file
        statements = self._split_statements(migration_path.read_text())

        with self._connect() as conn:
            try:
                for statement in statements:
                    logger.debug(f"Executing: {statement[:100]}...")
                    conn.execute(statement)
                conn.execute(
                    "INSERT INTO schema_migrations (migration_name) VALUES (?)",
                    (migration_file,),
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

        logger.info(f"Successfully applied migration: {migration_file}")

    def apply_migrations(self) -> bool:
        """
        Apply all pending migrations in order.

        Returns:
            bool: True if all migrations were applied successfully, False otherwise
        """
        pending_migrations = self._get_pending_migrations()

        if not pending_migrations:
            logger.info(f"No pending migrations for {self.db_path}")
            return True

        logger.info(f"Found {len(pending_migrations)} pending migrations to apply")

        if self._has_user_tables():
            self.backup_database()

        for migration_file in pending_migrations:
            try:
                self._execute_migration(migration_file)
            except (OSError, sqlite3.Error) as e:
                logger.error(f"Error applying migration {migration_file}: {e}")
                return False

        logger.info("All migrations applied successfully")
        return True

    def get_migration_status(self) -> dict:
        """
        Get the current migration status.

        Returns:
            dict: Dictionary containing migration status information
        """
        applied_migrations = self._get_applied_migrations()
        pending_migrations = self._get_pending_migrations()

        return {
            "applied_count": len(applied_migrations),
            "pending_count": len(pending_migrations),
            "applied_migrations": sorted(applied_migrations),
            "pending_migrations": pending_migrations,
        }
