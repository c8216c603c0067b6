"""
Services Package.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the entry point can consume without
knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import TypedDict

from retailsync.api_client import ApiClient
from retailsync.config import AppConfig
from retailsync.database import DatabaseManager
from retailsync.logger import get_logger
from retailsync.repositories.entities import create_repositories
from retailsync.repositories.entity_repository import EntityRepository
from retailsync.repositories.failed_sync_repository import FailedSyncRepository
from retailsync.repositories.sync_cursor_repository import SyncCursorRepository
from retailsync.services.sync_orchestrator import SyncOrchestrator
from retailsync.services.sync_worker import SyncWorkerService


class ServiceContainer(TypedDict):
    """Typed container for the wired repositories and services."""

    repositories: dict[str, EntityRepository]
    sync_cursor_repository: SyncCursorRepository
    failed_sync_repository: FailedSyncRepository
    sync_orchestrator: SyncOrchestrator
    sync_worker: SyncWorkerService


def create_services(
    db: DatabaseManager,
    api: ApiClient,
    config: AppConfig,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    Args:
        db: Initialised DatabaseManager with the schema in place.
        api: Remote API client.
        config: Application configuration.

    Returns:
        ServiceContainer mapping names to fully-wired instances.
    """
    repo_logger = get_logger("retailsync.repositories")
    sync_logger = get_logger("retailsync.sync")

    repositories = create_repositories(db, api, repo_logger)
    cursor_repo = SyncCursorRepository(db=db, logger=repo_logger)
    failed_repo = FailedSyncRepository(db=db, logger=repo_logger)

    orchestrator = SyncOrchestrator(
        db=db,
        repositories=list(repositories.values()),
        cursors=cursor_repo,
        failed_syncs=failed_repo,
        logger=sync_logger,
        user_type=config.SYNC_USER_TYPE,
        user_id=config.SYNC_USER_ID,
        batch_limit=config.SYNC_BATCH_LIMIT,
    )
    sync_worker = SyncWorkerService(
        orchestrator=orchestrator,
        config=config,
        logger=sync_logger,
    )

    return ServiceContainer(
        repositories=repositories,
        sync_cursor_repository=cursor_repo,
        failed_sync_repository=failed_repo,
        sync_orchestrator=orchestrator,
        sync_worker=sync_worker,
    )
