"""
Base Database Service Module

Shared connection management for the workspace and central stores.
Every access opens its own connection and closes it on the way out, so no
handle outlives the operation that needed it.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from ..errors import StoreAccessError

# Configure logger for this module
logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT)


class BaseDatabaseService:
    """
    Base class providing scoped SQLite connections and transactions.

    Specialized services subclass this and issue their queries through
    get_connection() for reads and transaction() for anything that writes
    more than one record.
    """

    def __init__(self, db_path: str):
        """
        Initialize the base database service.

        Args:
            db_path (str): Path to the SQLite database file. The directory
                          will be created if it doesn't exist.
        """
        self.db_path = db_path
        self._ensure_data_dir()

    def _ensure_data_dir(self):
        data_dir = os.path.dirname(self.db_path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir)

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.error(f"Cannot open store {self.db_path}: {e}")
            raise StoreAccessError(f"Cannot open store {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.db_path}: {e}")
            raise StoreAccessError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block of statements as one atomic unit.

        Commits when the block exits normally and rolls back on any
        exception. SQLite failures are re-raised as StoreAccessError; any
        other exception (caller errors included) propagates unchanged.
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error(f"Transaction failed on {self.db_path}: {e}")
                raise StoreAccessError(str(e)) from e
            except Exception:
                conn.rollback()
                raise

    def execute_query(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False,
    ) -> Any:
        """
        Execute a single statement in its own connection.

        Args:
            query (str): SQL query to execute
            params (tuple): Query parameters
            fetch_one (bool): Whether to fetch one result
            fetch_all (bool): Whether to fetch all results

        Returns:
            Any: A row, a list of rows, or the affected row count for writes

        Raises:
            StoreAccessError: If the store cannot be read or written
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)

            if fetch_one:
                return cursor.fetchone()
            elif fetch_all:
                return cursor.fetchall()
            else:
                conn.commit()
                return cursor.rowcount

    def get_current_timestamp(self) -> str:
        """
        Get current timestamp for database operations.

        Returns:
            str: Current timestamp in SQLite format
        """
        return format_timestamp(datetime.now())
