"""
Workspace API Router

Endpoints for opening workspaces and browsing the central registry.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..errors import IncreadError
from ..models.queue_models import OperationResult
from ..models.workspace_models import (
    OpenWorkspaceRequest,
    Workspace,
    WorkspaceRegistryEntry,
    WorkspaceStatsRequest,
)
from ..services.workspace_registry import WorkspaceRegistry
from .dependencies import get_registry, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("/", response_model=Workspace)
async def open_workspace(
    request: OpenWorkspaceRequest, registry: WorkspaceRegistry = Depends(get_registry)
):
    """
    Open a workspace folder, creating its store on first use.
    """
    try:
        return registry.open_workspace(request.folder_path)
    except IncreadError as e:
        raise to_http_exception(e)


@router.get("/recent", response_model=List[WorkspaceRegistryEntry])
async def get_recent_workspaces(
    limit: int = 10, registry: WorkspaceRegistry = Depends(get_registry)
):
    try:
        return registry.get_recent_workspaces(limit)
    except IncreadError as e:
        raise to_http_exception(e)


@router.put("/{library_id}/stats", response_model=OperationResult)
async def update_workspace_stats(
    library_id: str,
    request: WorkspaceStatsRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
):
    try:
        if not registry.update_workspace_stats(
            library_id, request.total_files, request.files_due_today
        ):
            raise HTTPException(status_code=404, detail="Workspace not found")
        return OperationResult(ok=True)
    except HTTPException:
        raise
    except IncreadError as e:
        raise to_http_exception(e)


@router.post("/{library_id}/stats/refresh", response_model=WorkspaceRegistryEntry)
async def refresh_workspace_stats(
    library_id: str, registry: WorkspaceRegistry = Depends(get_registry)
):
    """Recount total and due notes from the workspace's own store."""
    try:
        return registry.refresh_stats(library_id)
    except IncreadError as e:
        raise to_http_exception(e)


@router.delete("/{library_id}", response_model=OperationResult)
async def remove_workspace(
    library_id: str, registry: WorkspaceRegistry = Depends(get_registry)
):
    try:
        if not registry.remove_workspace(library_id):
            raise HTTPException(status_code=404, detail="Workspace not found")
        return OperationResult(ok=True, message="Workspace removed from registry")
    except HTTPException:
        raise
    except IncreadError as e:
        raise to_http_exception(e)
