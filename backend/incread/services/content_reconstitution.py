"""
Content Reconstitution Module

Rebuilds the text a reader sees for a note: each excerpt is spliced back
into its parent at its recorded line range, children before parents.
Within one depth level the highest range_start is spliced first so that a
splice never shifts the lines a later splice in the same parent relies on.
"""

import logging

from ..models.content_models import ChildRange, ExpandedContent
from ..models.source_models import LinePosition
from ..models.workspace_models import Workspace
from .fingerprint import split_lines
from .lineage_service import Descendant, LineageResolver
from .range_validator import RangeValidator

# Configure logger for this module
logger = logging.getLogger(__name__)

CONTENT_UNAVAILABLE = "[Content unavailable]"


def circular_sentinel(relative_path: str) -> str:
    return f"[Circular reference: {relative_path}]"


def _start_line(descendant: Descendant) -> int:
    start = descendant.source.range_start
    return start.line if isinstance(start, LinePosition) else 0


class ContentReconstitution(LineageResolver):
    """Expands a note's direct children, each with its own subtree inlined."""

    def __init__(self, workspace: Workspace):
        super().__init__(workspace)
        self.range_validator = RangeValidator(workspace)

    def _node_lines(self, descendant: Descendant) -> list[str]:
        if descendant.circular:
            return [circular_sentinel(descendant.relative_path)]
        text = self.read_note_text(descendant.relative_path)
        return split_lines(CONTENT_UNAVAILABLE if text is None else text)

    def expand_content(self, relative_path: str, validate: bool = True) -> ExpandedContent:
        """
        Build the expanded content of relative_path and of each direct child.

        Args:
            relative_path: Note whose children are displayed
            validate: Re-check every descendant's range against its own
                      parent's current text first, so moved excerpts splice
                      at their new positions

        Returns:
            ExpandedContent: The note's text with children inlined, and per
            direct child its range, expanded content and line count
        """
        root_text = self.read_note_text(relative_path)
        root_key = (relative_path,)
        lines_by_node = {
            root_key: split_lines(CONTENT_UNAVAILABLE if root_text is None else root_text)
        }

        with self.get_connection() as conn:
            descendants = self.get_descendants(conn, relative_path)

        if validate:
            results = self.range_validator.validate_sources(
                [d.source for d in descendants if not d.circular]
            )
            if any(result.status == "moved" for result in results):
                with self.get_connection() as conn:
                    descendants = self.get_descendants(conn, relative_path)

        # Nodes are keyed by their full chain; a circular child repeats an
        # ancestor's path and must not share its entry.
        for descendant in descendants:
            node_key = descendant.ancestors + (descendant.relative_path,)
            lines_by_node[node_key] = self._node_lines(descendant)

        ordered = sorted(
            descendants, key=lambda d: (-d.depth, -_start_line(d))
        )
        for descendant in ordered:
            if descendant.source.extract_type != "text-lines":
                continue
            node_key = descendant.ancestors + (descendant.relative_path,)
            parent_lines = lines_by_node[descendant.ancestors]
            start = descendant.source.range_start.line
            end = descendant.source.range_end.line
            parent_lines[start - 1 : end] = lines_by_node[node_key]

        child_ranges = []
        for descendant in sorted(
            (d for d in descendants if d.depth == 1), key=_start_line
        ):
            node_lines = lines_by_node[descendant.ancestors + (descendant.relative_path,)]
            child_ranges.append(
                ChildRange(
                    relative_path=descendant.relative_path,
                    extract_type=descendant.source.extract_type,
                    range_start=descendant.source.range_start,
                    range_end=descendant.source.range_end,
                    content="\n".join(node_lines),
                    line_count=len(node_lines),
                )
            )

        logger.debug(
            f"Expanded {relative_path}: {len(child_ranges)} children, {len(descendants)} descendants"
        )
        return ExpandedContent(
            content="\n".join(lines_by_node[root_key]), child_ranges=child_ranges
        )
