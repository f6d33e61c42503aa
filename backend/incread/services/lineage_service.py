"""
Lineage Resolver Module

Walks note_source parent links. All excerpts of one document, at any depth,
live in a single flat folder named after the top-level document, e.g.

    reading/paper.md
    reading/paper/10-20-paper.md
    reading/paper/10-20-paper.3-4-core-idea.md

Chains are walked with bounded loops; a chain that is too deep or revisits
a note is reported as a LineageIntegrityError.
"""

import logging
import sqlite3
from collections import deque
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from ..errors import LineageIntegrityError
from ..models.source_models import ExtractInfo, NoteSource
from .note_repository import NoteRepository

# Configure logger for this module
logger = logging.getLogger(__name__)

MAX_LINEAGE_DEPTH = 20
MAX_DESCENDANT_DEPTH = 10


@dataclass
class Descendant:
    """A note below the queried one, tagged with its relative depth."""

    source: NoteSource
    depth: int
    ancestors: tuple[str, ...] = field(default_factory=tuple)
    circular: bool = False

    @property
    def relative_path(self) -> str:
        return self.source.relative_path


def folder_for_top_level(relative_path: str) -> str:
    """Flat excerpt folder of a top-level note: its directory plus its stem."""
    path = PurePosixPath(relative_path)
    return (path.parent / path.stem).as_posix()


class LineageResolver(NoteRepository):
    """Resolves parents, root ancestors and excerpt folders for notes."""

    def find_parent_path(self, relative_path: str) -> str | None:
        with self.get_connection() as conn:
            source = self.get_note_source(conn, relative_path)
        return source.parent_path if source else None

    def is_top_level(self, conn: sqlite3.Connection, relative_path: str) -> bool:
        source = self.get_note_source(conn, relative_path)
        return source is None or source.parent_path is None

    def get_ancestor_chain(self, conn: sqlite3.Connection, relative_path: str) -> list[str]:
        """
        Paths from the note up to its top-level ancestor, note first.

        Raises:
            LineageIntegrityError: If the chain loops or exceeds MAX_LINEAGE_DEPTH
        """
        chain = [relative_path]
        current = relative_path

        for _ in range(MAX_LINEAGE_DEPTH):
            source = self.get_note_source(conn, current)
            if source is None or source.parent_path is None:
                return chain
            if source.parent_path in chain:
                raise LineageIntegrityError(
                    f"Lineage of {relative_path} loops back to {source.parent_path}"
                )
            current = source.parent_path
            chain.append(current)

        raise LineageIntegrityError(
            f"Lineage of {relative_path} exceeds {MAX_LINEAGE_DEPTH} levels"
        )

    def find_top_level_ancestor(self, relative_path: str) -> str:
        with self.get_connection() as conn:
            return self.get_ancestor_chain(conn, relative_path)[-1]

    def find_top_level_folder(self, relative_path: str) -> str:
        """Relative path of the flat folder holding relative_path's excerpt family."""
        return folder_for_top_level(self.find_top_level_ancestor(relative_path))

    def get_extract_info(self, relative_path: str) -> ExtractInfo:
        with self.get_connection() as conn:
            source = self.get_note_source(conn, relative_path)

        if source is None:
            return ExtractInfo(found=False)

        parent_path = (
            str(self.to_absolute(source.parent_path)) if source.parent_path else None
        )
        return ExtractInfo(
            found=True,
            extract_type=source.extract_type,
            parent_path=parent_path,
            range_start=source.range_start,
            range_end=source.range_end,
        )

    def get_descendants(
        self,
        conn: sqlite3.Connection,
        relative_path: str,
        max_depth: int = MAX_DESCENDANT_DEPTH,
    ) -> list[Descendant]:
        """
        Breadth-first list of every excerpt below relative_path.

        A child already on its own ancestor chain is returned once, marked
        circular, and not descended into.
        """
        descendants = []
        queue = deque([(relative_path, 0, (relative_path,))])

        while queue:
            parent_path, depth, ancestors = queue.popleft()
            children = self.get_child_sources(conn, parent_path)
            if children and depth >= max_depth:
                logger.warning(
                    f"Stopped descending below {parent_path}: depth cap {max_depth} reached"
                )
                continue

            for source in children:
                circular = source.relative_path in ancestors
                descendants.append(
                    Descendant(
                        source=source,
                        depth=depth + 1,
                        ancestors=ancestors,
                        circular=circular,
                    )
                )
                if circular:
                    logger.warning(
                        f"Circular lineage: {source.relative_path} is an ancestor of {parent_path}"
                    )
                    continue
                queue.append(
                    (source.relative_path, depth + 1, ancestors + (source.relative_path,))
                )

        return descendants
