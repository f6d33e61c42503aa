"""
Note Content API Router

Endpoints for excerpt lineage, range validation and expanded content.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from ..errors import IncreadError
from ..models.content_models import ExpandedContent, RangeUpdate, RangeValidation
from ..models.queue_models import OperationResult
from ..models.source_models import ExtractInfo
from ..models.workspace_models import Workspace
from ..services.content_reconstitution import ContentReconstitution
from ..services.lineage_service import LineageResolver
from ..services.range_validator import RangeValidator
from .dependencies import get_workspace, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("/{library_id}/source", response_model=ExtractInfo)
async def get_extract_info(relative_path: str, workspace: Workspace = Depends(get_workspace)):
    try:
        return LineageResolver(workspace).get_extract_info(relative_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/folder")
async def get_excerpt_folder(relative_path: str, workspace: Workspace = Depends(get_workspace)):
    """Folder holding every excerpt of the note's top-level document."""
    try:
        folder = LineageResolver(workspace).find_top_level_folder(relative_path)
        return {"relative_path": relative_path, "folder": folder}
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/validate", response_model=RangeValidation)
async def validate_range(relative_path: str, workspace: Workspace = Depends(get_workspace)):
    try:
        return RangeValidator(workspace).validate_range(relative_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/children", response_model=ExpandedContent)
async def expand_content(relative_path: str, workspace: Workspace = Depends(get_workspace)):
    """
    Expanded content of a note and each of its direct excerpts.

    Excerpts at every depth are validated first, so moved ranges are already
    updated in the response.
    """
    try:
        return ContentReconstitution(workspace).expand_content(relative_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/ranges", response_model=OperationResult)
async def update_ranges(
    relative_path: str,
    updates: List[RangeUpdate],
    workspace: Workspace = Depends(get_workspace),
):
    """Store new child ranges after the parent was edited."""
    try:
        count = RangeValidator(workspace).update_ranges(relative_path, updates)
        return OperationResult(ok=True, message=f"Updated {count} ranges")
    except IncreadError as e:
        raise to_http_exception(e)
