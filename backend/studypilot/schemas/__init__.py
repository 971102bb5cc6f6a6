"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from studypilot.schemas.processing import (
    AnalysisResult,
    EmbeddingResult,
    ExtractionResult,
    ProcessingStatusResponse,
    ProcessingTaskRead,
    ProcessMaterialResponse,
    StudyMaterialRead,
    TextChunk,
)
from studypilot.schemas.sync import (
    CONTENT_KEYS,
    OfflineContentView,
    OfflineItem,
    StorageUsage,
    SyncableContent,
    SyncLogEntry,
    SyncResult,
    SyncStatusResponse,
)

__all__ = [
    # Sync
    "CONTENT_KEYS",
    "OfflineContentView",
    "OfflineItem",
    "StorageUsage",
    "SyncableContent",
    "SyncLogEntry",
    "SyncResult",
    "SyncStatusResponse",
    # Processing
    "AnalysisResult",
    "EmbeddingResult",
    "ExtractionResult",
    "ProcessingStatusResponse",
    "ProcessingTaskRead",
    "ProcessMaterialResponse",
    "StudyMaterialRead",
    "TextChunk",
]
