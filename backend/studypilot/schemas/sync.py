"""
Pydantic schemas for offline content sync.

SyncableContent mirrors the wire format of the sync endpoint
(camelCase ``lastSyncTimestamp``) and is stored locally in the same form.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ContentKey = Literal["topics", "explanations", "progress", "quizzes"]

# Entity arrays carried by a snapshot, in wire order
CONTENT_KEYS: tuple[str, ...] = ("topics", "explanations", "progress", "quizzes")

Entity = Dict[str, Any]


class SyncableContent(BaseModel):
    """
    A full content snapshot (or a remote delta of the same shape).

    Each array holds JSON entities keyed by their ``id`` field.
    """

    model_config = ConfigDict(populate_by_name=True)

    topics: List[Entity] = Field(default_factory=list)
    explanations: List[Entity] = Field(default_factory=list)
    progress: List[Entity] = Field(default_factory=list)
    quizzes: List[Entity] = Field(default_factory=list)
    last_sync_timestamp: int = Field(
        default=0,
        alias="lastSyncTimestamp",
        description="Epoch milliseconds of the merge that produced this snapshot",
    )

    @field_validator("topics", "explanations", "progress", "quizzes")
    @classmethod
    def require_entity_ids(cls, v: List[Entity]) -> List[Entity]:
        """Every entity must carry an ``id``."""
        for entity in v:
            if "id" not in entity:
                raise ValueError("every entity must have an 'id'")
        return v

    def entities(self, key: str) -> List[Entity]:
        """Return the entity array named ``key``."""
        if key not in CONTENT_KEYS:
            raise ValueError(f"Unknown content key: {key}")
        return getattr(self, key)

    def entity_counts(self) -> Dict[str, int]:
        return {key: len(self.entities(key)) for key in CONTENT_KEYS}

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the camelCase wire field names."""
        return self.model_dump(by_alias=True)


class SyncResult(BaseModel):
    """Outcome of one sync attempt. Sync never raises; it reports."""

    success: bool
    error: Optional[str] = None
    synced_data: Optional[SyncableContent] = None


class SyncLogEntry(BaseModel):
    """One recorded sync attempt."""

    started_at: datetime
    completed_at: datetime
    success: bool
    error: Optional[str] = None
    entity_counts: Dict[str, int] = Field(default_factory=dict)


class OfflineContentView(BaseModel):
    """
    Read model for one content type: whatever is cached, refreshed by a
    sync when the device is online.
    """

    content_type: str
    data: Optional[List[Entity]] = None
    is_offline: bool = False
    last_sync: Optional[int] = None
    error: Optional[str] = None


class OfflineItem(BaseModel):
    """An individually saved offline item (quiz, lesson or flashcard)."""

    id: str
    type: Literal["quiz", "lesson", "flashcard"]
    title: str
    content: Any = None
    last_updated: datetime


class StorageUsage(BaseModel):
    """Offline item storage usage."""

    used: int = Field(description="Bytes used")
    total: int = Field(description="Configured cap in bytes")
    percentage: float


class SyncStatusResponse(BaseModel):
    """Response schema for the sync status endpoint."""

    available_offline: bool
    last_sync: Optional[int] = None
    entity_counts: Dict[str, int] = Field(default_factory=dict)
