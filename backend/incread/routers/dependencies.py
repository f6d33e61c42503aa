"""
Shared router helpers: lazily built services and error translation.
"""

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from ..config import Settings, load_settings
from ..errors import (
    CallerError,
    DuplicateRangeError,
    IncreadError,
    LineageIntegrityError,
    NoteNotFoundError,
    StoreAccessError,
    WorkspaceNotFoundError,
)
from ..models.workspace_models import Workspace
from ..services.workspace_registry import WorkspaceRegistry

logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_registry() -> WorkspaceRegistry:
    settings = get_settings()
    return WorkspaceRegistry(db_path=str(settings.central_store_path))


def get_workspace(
    library_id: str, registry: WorkspaceRegistry = Depends(get_registry)
) -> Workspace:
    try:
        return registry.get_workspace(library_id)
    except IncreadError as e:
        raise to_http_exception(e)


def to_http_exception(error: IncreadError) -> HTTPException:
    """Map a service error onto the HTTP status the caller should see."""
    if isinstance(error, (NoteNotFoundError, WorkspaceNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, DuplicateRangeError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, CallerError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, LineageIntegrityError):
        logger.error(f"Lineage integrity error: {error}")
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, StoreAccessError):
        return HTTPException(status_code=503, detail=f"Store unavailable: {error}")
    return HTTPException(status_code=500, detail=str(error))
