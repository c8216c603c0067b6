"""
Repositories Package.

Data access layer: the generic entity repository with its per-entity
declarations, plus the sync bookkeeping stores.
"""

from retailsync.repositories.base_repository import BaseRepository
from retailsync.repositories.entities import ENTITY_SPECS, create_repositories
from retailsync.repositories.entity_repository import (
    EndpointSet,
    EntityRepository,
    EntitySpec,
)
from retailsync.repositories.failed_sync_repository import FailedSyncRepository
from retailsync.repositories.sync_cursor_repository import SyncCursorRepository

__all__ = [
    "BaseRepository",
    "ENTITY_SPECS",
    "EndpointSet",
    "EntityRepository",
    "EntitySpec",
    "FailedSyncRepository",
    "SyncCursorRepository",
    "create_repositories",
]
