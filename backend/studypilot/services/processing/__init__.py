"""Material processing pipeline."""

from studypilot.services.processing.pipeline import (
    MaterialProcessingPipeline,
    PipelineOptions,
    parse_analysis,
)
from studypilot.services.processing.repository import ProcessingRepository, SqlProcessingRepository
from studypilot.services.processing.retry import retry_operation

__all__ = [
    "MaterialProcessingPipeline",
    "PipelineOptions",
    "parse_analysis",
    "ProcessingRepository",
    "SqlProcessingRepository",
    "retry_operation",
]
