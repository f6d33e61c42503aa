"""
Range Validator / Recoverer

Checks that a text-lines excerpt still sits at its recorded line range in
the parent. When the parent was edited the excerpt is searched for by its
fingerprint with a window of the same line count:

- valid: the recorded window still fingerprints to the stored hash
- moved: the text was found elsewhere; the stored range is updated
- lost: the text is gone; the stored range is left untouched
"""

import logging
from ..errors import InvalidRangeError, NoteNotFoundError
from ..models.content_models import LineRange, RangeUpdate, RangeValidation
from ..models.source_models import LinePosition, NoteSource, encode_position
from .fingerprint import extract_lines, find_content_by_hash, fingerprint
from .note_repository import NoteRepository

# Configure logger for this module
logger = logging.getLogger(__name__)


class RangeValidator(NoteRepository):
    """Validates and recovers recorded excerpt ranges."""

    def validate_range(self, relative_path: str) -> RangeValidation:
        """
        Validate one excerpt against its parent's current content.

        Raises:
            NoteNotFoundError: If the note has no lineage record
        """
        with self.get_connection() as conn:
            source = self.get_note_source(conn, relative_path)
        if source is None:
            raise NoteNotFoundError(relative_path)
        return self._validate_source(source)

    def validate_children(self, parent_path: str) -> list[RangeValidation]:
        """Validate every direct text-lines child of parent_path."""
        with self.get_connection() as conn:
            children = self.get_child_sources(conn, parent_path)
        return self.validate_sources(children)

    def validate_sources(self, sources: list[NoteSource]) -> list[RangeValidation]:
        """Validate each text-lines source once, in the order given."""
        seen = set()
        results = []
        for source in sources:
            if source.extract_type != "text-lines" or source.relative_path in seen:
                continue
            seen.add(source.relative_path)
            results.append(self._validate_source(source))
        return results

    def _validate_source(self, source: NoteSource) -> RangeValidation:
        path = source.relative_path
        if (
            source.extract_type != "text-lines"
            or not source.source_hash
            or not source.parent_path
        ):
            return RangeValidation(relative_path=path, status="unverifiable")

        start = source.range_start.line
        end = source.range_end.line
        recorded = LineRange(start=start, end=end)

        parent_content = self.read_note_text(source.parent_path)
        if parent_content is None:
            logger.warning(f"Parent {source.parent_path} of {path} is unreadable")
            return RangeValidation(relative_path=path, status="lost", range=recorded)

        if fingerprint(extract_lines(parent_content, start, end)) == source.source_hash:
            return RangeValidation(relative_path=path, status="valid", range=recorded)

        found = find_content_by_hash(
            parent_content, source.source_hash, end - start + 1
        )
        if found is None:
            logger.warning(
                f"Excerpt {path} lost: lines {start}-{end} no longer match {source.parent_path}"
            )
            return RangeValidation(relative_path=path, status="lost", range=recorded)

        new_start, new_end = found
        with self.transaction() as conn:
            self.update_source_range(conn, path, str(new_start), str(new_end))

        logger.info(f"Excerpt {path} moved from {start}-{end} to {new_start}-{new_end}")
        return RangeValidation(
            relative_path=path,
            status="moved",
            range=LineRange(start=new_start, end=new_end),
            old_range=recorded,
        )

    def update_ranges(
        self,
        parent_path: str,
        updates: list[RangeUpdate],
    ) -> int:
        """
        Apply new line ranges for children of parent_path in one transaction.

        The stored fingerprint is refreshed from the parent's current text so
        that later validation treats the new window as valid.

        Returns:
            int: Number of children updated

        Raises:
            InvalidRangeError: If an update is inverted or names a non-child
        """
        parent_content = self.read_note_text(parent_path)
        if parent_content is None:
            raise NoteNotFoundError(parent_path)

        with self.transaction() as conn:
            for update in updates:
                if update.range_end < update.range_start:
                    raise InvalidRangeError(
                        f"Range {update.range_start}-{update.range_end} is inverted"
                    )
                source = self.get_note_source(conn, update.relative_path)
                if source is None or source.parent_path != parent_path:
                    raise InvalidRangeError(
                        f"{update.relative_path} is not an excerpt of {parent_path}"
                    )
                if source.extract_type != "text-lines":
                    raise InvalidRangeError(
                        f"{update.relative_path} is not a line-range excerpt"
                    )

                new_hash = fingerprint(
                    extract_lines(parent_content, update.range_start, update.range_end)
                )
                conn.execute(
                    """
                    UPDATE note_source SET range_start = ?, range_end = ?, source_hash = ?
                    WHERE library_id = ? AND relative_path = ?
                    """,
                    (
                        encode_position(LinePosition(line=update.range_start)),
                        encode_position(LinePosition(line=update.range_end)),
                        new_hash,
                        self.library_id,
                        update.relative_path,
                    ),
                )

        logger.info(f"Updated {len(updates)} excerpt ranges under {parent_path}")
        return len(updates)
