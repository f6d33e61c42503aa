"""
Extraction API Router
"""

import logging

from fastapi import APIRouter, Depends

from ..errors import IncreadError
from ..models.source_models import ExtractRequest, ExtractResult
from ..models.workspace_models import Workspace
from ..services.extraction_service import ExtractionService
from .dependencies import get_workspace, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/extractions", tags=["extractions"])


@router.post("/{library_id}", response_model=ExtractResult)
async def extract(request: ExtractRequest, workspace: Workspace = Depends(get_workspace)):
    """
    Create an excerpt note from a range of a parent note.

    Raises:
        HTTPException: 409 if the same range was already extracted
    """
    try:
        return ExtractionService(workspace).extract(
            parent_path=request.parent_path,
            range_start=request.range_start,
            range_end=request.range_end,
            text=request.text,
            kind=request.kind,
            queue_name=request.queue_name,
        )
    except IncreadError as e:
        raise to_http_exception(e)
