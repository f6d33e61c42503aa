"""
Content fingerprints for excerpted text.

A fingerprint identifies excerpt content independently of where it sits in
the parent, so a moved excerpt can be found again by searching for it.
"""

import hashlib


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def split_lines(content: str) -> list[str]:
    return content.split("\n")


def extract_lines(content: str, start: int, end: int) -> str:
    """
    Return lines start..end of content, 1-based and inclusive.

    A window running past the end of the content is cut short.
    """
    lines = split_lines(content)
    return "\n".join(lines[max(start, 1) - 1 : end])


def find_content_by_hash(
    content: str, target_hash: str, line_count: int
) -> tuple[int, int] | None:
    """
    Slide a window of line_count lines over content looking for target_hash.

    Returns:
        tuple[int, int] | None: 1-based inclusive (start, end) of the first
        matching window, or None if no window matches
    """
    if line_count < 1:
        return None

    lines = split_lines(content)
    for index in range(len(lines) - line_count + 1):
        window = "\n".join(lines[index : index + line_count])
        if fingerprint(window) == target_hash:
            return index + 1, index + line_count
    return None
