"""
Review Queue API Router

Endpoints for queue placement, review feedback, due lists and per-queue
configuration.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends

from ..errors import IncreadError
from ..models.queue_models import (
    AddToQueueResult,
    DueNote,
    FeedbackRequest,
    FeedbackResult,
    IntervalRequest,
    MoveRequest,
    NotePathRequest,
    OperationResult,
    QueueConfigValue,
    RankRequest,
)
from ..models.workspace_models import Workspace
from ..services.queue_scheduler import QueueScheduler
from ..services.workspace_registry import WorkspaceRegistry
from .dependencies import get_registry, get_workspace, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/due", response_model=List[DueNote])
async def get_all_due(
    include_future: bool = False, registry: WorkspaceRegistry = Depends(get_registry)
):
    """
    Due notes of every registered workspace, by due date then rank.

    Workspaces whose store cannot be read are left out.
    """
    try:
        return registry.get_all_due_across_libraries(include_future=include_future)
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/due", response_model=List[DueNote])
async def get_due_today(
    include_future: bool = False,
    limit: Optional[int] = None,
    workspace: Workspace = Depends(get_workspace),
):
    try:
        scheduler = QueueScheduler(workspace)
        if include_future:
            return scheduler.get_all_notes()
        return scheduler.get_due_today(limit=limit)
    except IncreadError as e:
        raise to_http_exception(e)


@router.post("/{library_id}/notes", response_model=AddToQueueResult)
async def add_to_queue(request: NotePathRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        return QueueScheduler(workspace).add_to_queue(request.relative_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.post("/{library_id}/feedback", response_model=FeedbackResult)
async def record_feedback(
    request: FeedbackRequest, workspace: Workspace = Depends(get_workspace)
):
    """
    Record a review of a note.

    Returns:
        FeedbackResult: Days until the next review and the note's queue
    """
    try:
        return QueueScheduler(workspace).record_feedback(
            request.relative_path, request.feedback
        )
    except IncreadError as e:
        raise to_http_exception(e)


@router.post("/{library_id}/move", response_model=OperationResult)
async def move_to_queue(request: MoveRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        return QueueScheduler(workspace).move_to_queue(
            request.relative_path, request.target_queue
        )
    except IncreadError as e:
        raise to_http_exception(e)


@router.post("/{library_id}/forget", response_model=OperationResult)
async def forget_note(request: NotePathRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        return QueueScheduler(workspace).forget(request.relative_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/rank", response_model=OperationResult)
async def update_rank(request: RankRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        return QueueScheduler(workspace).update_rank(request.relative_path, request.rank)
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/rotation-interval", response_model=OperationResult)
async def update_rotation_interval(
    request: IntervalRequest, workspace: Workspace = Depends(get_workspace)
):
    try:
        return QueueScheduler(workspace).update_rotation_interval(
            request.relative_path, request.days
        )
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/intermediate-interval", response_model=OperationResult)
async def update_intermediate_interval(
    request: IntervalRequest, workspace: Workspace = Depends(get_workspace)
):
    try:
        return QueueScheduler(workspace).update_intermediate_interval(
            request.relative_path, request.days
        )
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/note-queue")
async def get_note_queue(relative_path: str, workspace: Workspace = Depends(get_workspace)):
    try:
        queue_name = QueueScheduler(workspace).get_note_queue(relative_path)
        return {"relative_path": relative_path, "queue_name": queue_name}
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/{library_id}/config/{queue_name}", response_model=Dict[str, str])
async def get_queue_config(queue_name: str, workspace: Workspace = Depends(get_workspace)):
    try:
        return QueueScheduler(workspace).get_queue_settings(queue_name)
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/config/{queue_name}/{config_key}", response_model=OperationResult)
async def set_queue_config(
    queue_name: str,
    config_key: str,
    request: QueueConfigValue,
    workspace: Workspace = Depends(get_workspace),
):
    try:
        QueueScheduler(workspace).set_queue_setting(queue_name, config_key, request.value)
        return OperationResult(ok=True)
    except IncreadError as e:
        raise to_http_exception(e)
