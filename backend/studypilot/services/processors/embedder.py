"""
Embedding Service

Embedding generation using sentence-transformers, run locally.

Model: sentence-transformers/all-MiniLM-L6-v2 (default)
- 384 dimensions
- Fast on CPU

Features:
---------
- Batch processing for efficiency
- CPU/CUDA/MPS device support
- Model loading and inference off the event loop (asyncio.to_thread)
- Embedding normalization for cosine similarity
"""

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

import numpy as np
import torch
from sentence_transformers import SentenceTransformer

from studypilot.core.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class Embedder(Protocol):
    async def embed_text(self, text: str) -> list[float]:
        """Return the embedding vector for one piece of text."""
        ...


class EmbeddingService:
    """
    Embedder backed by a sentence-transformers model.

    Failures propagate to the caller; the processing pipeline owns retries.

    Usage:
    ------
    embedder = EmbeddingService()
    await embedder.initialize()

    embedding = await embedder.embed_text("Photosynthesis converts light...")
    embeddings = await embedder.embed_texts_batch(["Text 1", "Text 2"])
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        device: Optional[str] = None,
        normalize: bool = True
    ):
        """
        Args:
            model_name: Model name/path (default from settings)
            batch_size: Batch size for processing (default from settings)
            device: Device to use: cpu, cuda, mps (default from settings)
            normalize: Whether to normalize embeddings (default True)
        """
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.device = device or settings.EMBEDDING_DEVICE
        self.normalize = normalize

        self.model: Optional[SentenceTransformer] = None
        self._initialized = False

        self._validate_device()

    def _validate_device(self) -> None:
        """Fall back to CPU when the requested accelerator is unavailable."""
        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA not available, falling back to CPU")
            self.device = "cpu"
        elif self.device == "mps" and not torch.backends.mps.is_available():
            logger.warning("MPS not available, falling back to CPU")
            self.device = "cpu"

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Load the model. Downloads it on first use.

        Raises:
            Exception: If model loading fails
        """
        if self._initialized:
            return

        logger.info(f"Loading embedding model: {self.model_name} on {self.device}")
        try:
            self.model = await asyncio.to_thread(
                SentenceTransformer,
                self.model_name,
                device=self.device
            )
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise

        self._initialized = True
        logger.info(
            f"Embedding model loaded. Dimension: {self.get_embedding_dimension()}, "
            f"Device: {self.device}"
        )

    def get_embedding_dimension(self) -> int:
        if not self._initialized or self.model is None:
            return settings.EMBEDDING_DIMENSION
        return self.model.get_sentence_embedding_dimension()

    async def embed_text(self, text: str) -> list[float]:
        """
        Generate the embedding for a single text.

        Loads the model on first call. Empty text maps to a zero vector.
        """
        if not self._initialized:
            await self.initialize()

        if not text or not text.strip():
            logger.warning("Empty text provided for embedding")
            return [0.0] * self.get_embedding_dimension()

        embedding = await asyncio.to_thread(self._encode, text)
        return embedding.tolist()

    async def embed_texts_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for several texts in one model call."""
        if not texts:
            return []
        if not self._initialized:
            await self.initialize()

        embeddings = await asyncio.to_thread(self._encode, texts)
        return [row.tolist() for row in embeddings]

    def _encode(self, texts: str | list[str]) -> np.ndarray:
        """Run the model (sync, called in a worker thread)."""
        return self.model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
            convert_to_numpy=True
        )

    async def shutdown(self) -> None:
        """Free the model and any GPU memory."""
        if self.model is not None:
            if self.device == "cuda":
                torch.cuda.empty_cache()
            self.model = None
            self._initialized = False
            logger.info("Embedding service shut down")
