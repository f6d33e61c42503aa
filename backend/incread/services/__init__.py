"""
Services Package

This package contains the scheduling and lineage services for a workspace
store, the migration service shared by workspace and central stores, and
the central workspace registry.
"""

from .base_database_service import BaseDatabaseService
from .content_reconstitution import ContentReconstitution
from .extraction_service import ExtractionService
from .lineage_service import LineageResolver
from .migration_service import MigrationService
from .note_repository import NoteRepository
from .queue_scheduler import QueueScheduler
from .range_validator import RangeValidator
from .workspace_registry import WorkspaceRegistry, WorkspaceStore, find_workspace_root

__all__ = [
    "BaseDatabaseService",
    "ContentReconstitution",
    "ExtractionService",
    "LineageResolver",
    "MigrationService",
    "NoteRepository",
    "QueueScheduler",
    "RangeValidator",
    "WorkspaceRegistry",
    "WorkspaceStore",
    "find_workspace_root",
]
