"""
Study Material Models

Models Included:
----------------
1. StudyMaterial - An uploaded study material and its processed results
2. MaterialEmbedding - One embedded text chunk of a material
3. MaterialType (Enum) - Kind of upload (pdf, image, text)
4. MaterialStatus (Enum) - Lifecycle state of a material

Relationships:
--------------
- StudyMaterial (1) ←→ (Many) ProcessingTask
- StudyMaterial (1) ←→ (Many) MaterialEmbedding

Status Flow:
------------
PROCESSING → READY   (every stage completed)
     ↓
   ERROR             (a stage failed; error_message says why)
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studypilot.core.config import settings
from studypilot.db.base import BaseModel, String20, String255

if TYPE_CHECKING:
    from studypilot.models.processing import ProcessingTask


class MaterialType(str, enum.Enum):
    """Kind of uploaded material."""

    PDF = "pdf"
    IMAGE = "image"
    TEXT = "text"

    def __str__(self) -> str:
        return self.value


class MaterialStatus(str, enum.Enum):
    """
    Material lifecycle.

    A material is created in PROCESSING on upload and ends in READY or
    ERROR once the pipeline has run.
    """

    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class StudyMaterial(BaseModel):
    """
    An uploaded study material.

    Table: study_materials
    ----------------------
    source_content holds the raw upload (base64 for pdf/image, plain text
    otherwise). The pipeline fills content, topics, processed_content and
    embeddings in a single update when every stage has completed.
    """

    __tablename__ = "study_materials"

    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Owner of the material"
    )

    title: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        comment="Display title"
    )

    material_type: Mapped[MaterialType] = mapped_column(
        String20,
        nullable=False,
        default=MaterialType.TEXT,
        comment="pdf, image or text"
    )

    source_content: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Raw upload: base64 for binary types, plain text otherwise"
    )

    status: Mapped[MaterialStatus] = mapped_column(
        String20,
        nullable=False,
        default=MaterialStatus.PROCESSING,
        index=True,
        comment="processing, ready or error"
    )

    content: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Extracted text"
    )

    topics: Mapped[Optional[list[str]]] = mapped_column(
        JSONB,
        nullable=True,
        comment="Main topics from content analysis"
    )

    processed_content: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=True,
        comment="summary, key_points, difficulty_level, prerequisites, related_topics"
    )

    embeddings: Mapped[Optional[list[float]]] = mapped_column(
        JSONB,
        nullable=True,
        comment="Flat concatenation of all chunk embedding vectors"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Message of the exception that stopped processing"
    )

    last_processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the pipeline last finished (ready or error)"
    )

    tasks: Mapped[list["ProcessingTask"]] = relationship(
        "ProcessingTask",
        back_populates="material",
        cascade="all, delete-orphan",
        order_by="ProcessingTask.created_at",
    )

    chunks: Mapped[list["MaterialEmbedding"]] = relationship(
        "MaterialEmbedding",
        back_populates="material",
        cascade="all, delete-orphan",
        order_by="MaterialEmbedding.chunk_index",
    )

    def __repr__(self) -> str:
        return f"StudyMaterial(id={self.id}, status={self.status})"


class MaterialEmbedding(BaseModel):
    """
    One embedded chunk of a material's extracted text.

    Rows are keyed by (material_id, chunk_index) and written in batches.
    """

    __tablename__ = "material_embeddings"
    __table_args__ = (
        UniqueConstraint("material_id", "chunk_index", name="uq_material_embedding_chunk_index"),
    )

    material_id: Mapped[int] = mapped_column(
        ForeignKey("study_materials.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Foreign key to study_materials table"
    )

    chunk_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position of this chunk within the material (0-indexed)"
    )

    chunk_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="The chunk text that was embedded"
    )

    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION),
        nullable=False,
        comment="Embedding vector"
    )

    material: Mapped["StudyMaterial"] = relationship(
        "StudyMaterial",
        back_populates="chunks",
    )

    def __repr__(self) -> str:
        return f"MaterialEmbedding(material_id={self.material_id}, chunk_index={self.chunk_index})"
