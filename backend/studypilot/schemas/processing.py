"""
Pydantic schemas for the material processing pipeline

Stage results are validated here before they are persisted, so a
malformed model response fails at the boundary rather than in the database.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ========================================
# Stage Results
# ========================================

class ExtractionResult(BaseModel):
    """Result of the text extraction stage."""

    content: str = Field(description="Extracted plain text", min_length=1)

    @field_validator("content")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("extracted content is empty")
        return v


class AnalysisResult(BaseModel):
    """Structured analysis returned by the content generator."""

    topics: List[str] = Field(default_factory=list, description="Main topics covered")
    summary: str = Field(description="Short summary of the material")
    key_points: List[str] = Field(default_factory=list, description="Key points to remember")
    difficulty_level: Literal["beginner", "intermediate", "advanced"] = Field(
        description="Estimated difficulty"
    )
    prerequisites: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)

    def processed_content(self) -> Dict[str, Any]:
        """The subset persisted as the material's processed_content."""
        return self.model_dump(exclude={"topics"})


class EmbeddingResult(BaseModel):
    """Result of the embedding generation stage."""

    chunk_count: int = Field(ge=0)
    dimension: int = Field(ge=0)
    embeddings: List[float] = Field(
        default_factory=list,
        description="Concatenation of every chunk vector in chunk order",
    )


class TextChunk(BaseModel):
    """One chunk of extracted text and its embedding vector."""

    text: str
    embedding: List[float]


# ========================================
# Read Models
# ========================================

class StudyMaterialRead(BaseModel):
    """Snapshot of a study material as the pipeline sees it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    material_type: str
    source_content: Optional[str] = None
    status: str
    content: Optional[str] = None
    topics: Optional[List[str]] = None
    processed_content: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    last_processed_at: Optional[datetime] = None


# ========================================
# API Schemas
# ========================================

class ProcessingTaskRead(BaseModel):
    """Read model of a processing task."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Task ID")
    material_id: int = Field(description="Material ID")
    task_type: str = Field(description="Pipeline stage")
    status: str = Field(description="pending, processing, completed or error")
    progress: float = Field(ge=0.0, le=1.0, description="Fraction complete")
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProcessingStatusResponse(BaseModel):
    """Response schema for a material's processing status."""

    material_id: int
    tasks: List[ProcessingTaskRead]
    cached: bool = Field(
        default=False,
        description="True when served from the local cache because the task store was unreachable",
    )


class ProcessMaterialResponse(BaseModel):
    """Response schema for queueing a material for processing."""

    material_id: int
    task_id: str = Field(description="Celery task ID")
    status: str = "queued"
