"""
Range Validation and Reconstitution Models
"""

from typing import Literal

from pydantic import BaseModel, Field

from .source_models import EXTRACT_TYPES, Position

VALIDATION_STATUSES = Literal["valid", "moved", "lost", "unverifiable"]


class LineRange(BaseModel):
    start: int = Field(..., ge=1)
    end: int = Field(..., ge=1)


class RangeValidation(BaseModel):
    """Outcome of checking an excerpt against its parent's current text"""

    relative_path: str
    status: VALIDATION_STATUSES
    range: LineRange | None = None
    old_range: LineRange | None = None


class RangeUpdate(BaseModel):
    """A child's new line range after its parent was edited"""

    relative_path: str
    range_start: int = Field(..., ge=1)
    range_end: int = Field(..., ge=1)


class ChildRange(BaseModel):
    """A direct child as it appears inside its parent's expanded text"""

    relative_path: str
    extract_type: EXTRACT_TYPES
    range_start: Position
    range_end: Position
    content: str
    line_count: int


class ExpandedContent(BaseModel):
    content: str
    child_ranges: list[ChildRange]
