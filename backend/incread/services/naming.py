"""
Excerpt file naming.

Child notes are named by appending a "start-end-slug" segment to their
parent's chain, so a file name spells out its whole ancestry:

    paper.md                          top-level document
    10-20-paper.md                    lines 10-20 of paper.md
    10-20-paper.15-18-core-concepts-of.md
"""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

NOTE_SUFFIX = ".md"
FALLBACK_SLUG = "excerpt"

_WORD_PATTERN = re.compile(r"[a-z0-9]+")
_TOKEN = r"\d+(?:_\d+)?"
_SEGMENT_PATTERN = re.compile(rf"^({_TOKEN})-({_TOKEN})-(.+)$")


@dataclass
class NameSegment:
    """One ancestor hop in a chained file name."""

    range_start: str
    range_end: str
    name: str


def slugify(text: str, max_words: int | None = 3) -> str:
    """Lowercased alphanumeric words of text joined by hyphens."""
    words = _WORD_PATTERN.findall(text.lower())
    if max_words is not None:
        words = words[:max_words]
    return "-".join(words)


def parse_note_file_name(stem: str) -> list[NameSegment] | None:
    """
    Split a chained name into its segments.

    Returns None unless every dot-separated segment has the
    start-end-name form.
    """
    if not stem:
        return None

    segments = []
    for part in stem.split("."):
        match = _SEGMENT_PATTERN.match(part)
        if not match:
            return None
        segments.append(NameSegment(*match.groups()))
    return segments


def generate_child_name(
    parent_path: str,
    range_start: str,
    range_end: str,
    text: str,
    parent_is_top_level: bool | None = None,
) -> str:
    """
    Build the file name for a new excerpt of parent_path.

    Args:
        parent_path: Parent note path; only its file name is used
        range_start: Start position token
        range_end: End position token
        text: Excerpted text, source of the slug
        parent_is_top_level: Whether the parent has no lineage record.
            When None the parent's name is inspected instead.

    Returns:
        str: File name including the .md suffix
    """
    parent_stem = PurePosixPath(parent_path).stem
    if parent_is_top_level is None:
        parent_is_top_level = parse_note_file_name(parent_stem) is None

    if parent_is_top_level:
        slug = slugify(parent_stem, max_words=None) or slugify(text) or FALLBACK_SLUG
        return f"{range_start}-{range_end}-{slug}{NOTE_SUFFIX}"

    slug = slugify(text) or FALLBACK_SLUG
    return f"{parent_stem}.{range_start}-{range_end}-{slug}{NOTE_SUFFIX}"
