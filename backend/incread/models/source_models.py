"""
Lineage Record Models

Pydantic models for excerpt positions, note source records and extraction
requests. Positions are a tagged union; the string form used in the store
is produced and read only by encode_position / decode_position.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

# ========================================
# POSITIONS
# ========================================


EXTRACT_TYPES = Literal["text-lines", "pdf-page", "pdf-text", "video-clip", "flashcard"]


class LinePosition(BaseModel):
    """1-based line in a text parent"""

    kind: Literal["line"] = "line"
    line: int = Field(..., ge=1)


class PagePosition(BaseModel):
    """1-based page in a PDF parent"""

    kind: Literal["page"] = "page"
    page: int = Field(..., ge=1)


class PdfPosition(BaseModel):
    """Line within a page of a PDF parent"""

    kind: Literal["pdf"] = "pdf"
    page: int = Field(..., ge=1)
    line: int = Field(..., ge=1)


class CharOffset(BaseModel):
    """0-based character offset into the parent text"""

    kind: Literal["char"] = "char"
    offset: int = Field(..., ge=0)


class TimeOffset(BaseModel):
    """Offset in seconds into a video"""

    kind: Literal["time"] = "time"
    seconds: float = Field(..., ge=0)


Position = Annotated[
    Union[LinePosition, PagePosition, PdfPosition, CharOffset, TimeOffset],
    Field(discriminator="kind"),
]

POSITION_KIND_BY_TYPE = {
    "text-lines": "line",
    "pdf-page": "page",
    "pdf-text": "pdf",
    "flashcard": "char",
    "video-clip": "time",
}


def encode_position(position: Position) -> str:
    """Render a position for the range_start / range_end columns."""
    if isinstance(position, LinePosition):
        return str(position.line)
    if isinstance(position, PagePosition):
        return str(position.page)
    if isinstance(position, PdfPosition):
        return f"{position.page}:{position.line}"
    if isinstance(position, CharOffset):
        return str(position.offset)
    if isinstance(position, TimeOffset):
        return f"{position.seconds:g}"
    raise TypeError(f"Unsupported position: {position!r}")


def decode_position(extract_type: str, raw: str) -> Position:
    """Read a stored range column back into its typed position."""
    if extract_type == "text-lines":
        return LinePosition(line=int(raw))
    if extract_type == "pdf-page":
        return PagePosition(page=int(raw))
    if extract_type == "pdf-text":
        page, _, line = str(raw).partition(":")
        return PdfPosition(page=int(page), line=int(line or 1))
    if extract_type == "flashcard":
        return CharOffset(offset=int(raw))
    if extract_type == "video-clip":
        return TimeOffset(seconds=float(raw))
    raise ValueError(f"Unknown extract type: {extract_type}")


def name_token(position: Position) -> str:
    """Position as it appears in a generated file name."""
    if isinstance(position, PdfPosition):
        return f"{position.page}_{position.line}"
    if isinstance(position, TimeOffset):
        # Millisecond precision, fraction after an underscore: 10.5 -> "10_5"
        seconds = f"{position.seconds:.3f}".rstrip("0").rstrip(".")
        return seconds.replace(".", "_")
    return encode_position(position)


# ========================================
# NOTE SOURCE MODELS
# ========================================


class NoteSource(BaseModel):
    """Lineage record for an extracted note"""

    library_id: str
    relative_path: str
    parent_path: str | None = None
    extract_type: EXTRACT_TYPES
    range_start: Position
    range_end: Position
    source_hash: str | None = None
    created_time: str | None = None


class ExtractInfo(BaseModel):
    """Where a note was extracted from, with the parent as an absolute path"""

    found: bool
    extract_type: EXTRACT_TYPES | None = None
    parent_path: str | None = None
    range_start: Position | None = None
    range_end: Position | None = None


# ========================================
# EXTRACTION MODELS
# ========================================


class ExtractRequest(BaseModel):
    """Request model for creating an excerpt"""

    parent_path: str = Field(..., min_length=1)
    kind: EXTRACT_TYPES = "text-lines"
    range_start: Position
    range_end: Position
    text: str = ""
    queue_name: str | None = None


class ExtractResult(BaseModel):
    ok: bool = True
    child_path: str
