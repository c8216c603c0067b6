"""
Sync Bookkeeping Models.

Persisted cursor and failed-record rows, plus the reports the orchestrator
hands back to callers.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from retailsync.models.results import Failure

__all__ = [
    "EntitySyncReport",
    "FailedSync",
    "RetryReport",
    "SyncCursor",
    "SyncReport",
]


class SyncCursor(BaseModel):
    """Resumption point for one entity table.

    ``part_no`` is the next page to request.  ``update_date`` is the server
    checkpoint of the last *completed* sync and is sent unchanged for every
    page of the current one.
    """

    model_config = ConfigDict(from_attributes=True)

    table_name: str
    part_no: int = Field(default=0, ge=0)
    update_date: str = ""
    last_synced_at: Optional[str] = None


class FailedSync(BaseModel):
    """A record whose page applied but which could not be stored itself."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    table_name: str
    data_id: int
    part_no: int = 0
    error_message: str = ""
    created_at: Optional[str] = None


class EntitySyncReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    entity: str
    table_name: str
    pages: int = 0
    records: int = 0
    failed_ids: list[int] = Field(default_factory=list)
    completed: bool = False
    skipped: bool = False
    stopped: bool = False
    failure: Optional[Failure] = None


class SyncReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    entities: list[EntitySyncReport] = Field(default_factory=list)
    full_resync: bool = False
    skipped: bool = False
    stopped: bool = False
    failure: Optional[Failure] = None

    @property
    def records(self) -> int:
        return sum(e.records for e in self.entities)

    @property
    def completed(self) -> bool:
        return (
            not self.skipped
            and not self.stopped
            and self.failure is None
            and all(e.completed for e in self.entities)
        )


class RetryReport(BaseModel):
    attempted: int = 0
    recovered: list[int] = Field(default_factory=list)
    still_failing: list[int] = Field(default_factory=list)
    dropped: list[int] = Field(default_factory=list)
