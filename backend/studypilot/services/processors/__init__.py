"""Chunking, batching and embedding."""

from studypilot.services.processors.batch import BatchOptions, BatchProcessor
from studypilot.services.processors.chunker import TextChunks, chunk_text

__all__ = ["BatchOptions", "BatchProcessor", "TextChunks", "chunk_text"]
