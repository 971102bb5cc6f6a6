"""
Text Chunking

Splits extracted material text into word-boundary chunks for embedding.

Guarantees:
-----------
- A chunk never exceeds max_chunk_size characters, except a single word
  longer than the limit, which becomes a chunk of its own (words are never
  split).
- Joining the chunks with single spaces reproduces the whitespace-normalised
  input: " ".join(chunks) == " ".join(text.split())
- Empty or whitespace-only text yields no chunks.

Configuration from settings:
- CHUNK_SIZE_CHARS: 4000 (default)
"""

from typing import Iterator, List, Optional

from studypilot.core.config import settings


def chunk_text(text: str, max_chunk_size: Optional[int] = None) -> Iterator[str]:
    """
    Lazily yield word-boundary chunks of ``text``.

    Args:
        text: Text to chunk
        max_chunk_size: Max characters per chunk (default from settings)

    Raises:
        ValueError: If max_chunk_size is smaller than 1
    """
    size = max_chunk_size if max_chunk_size is not None else settings.CHUNK_SIZE_CHARS
    if size < 1:
        raise ValueError(f"max_chunk_size must be at least 1, got {size}")

    current: List[str] = []
    current_length = 0

    for word in text.split():
        if not current:
            current = [word]
            current_length = len(word)
        elif current_length + 1 + len(word) <= size:
            current.append(word)
            current_length += 1 + len(word)
        else:
            yield " ".join(current)
            current = [word]
            current_length = len(word)

    if current:
        yield " ".join(current)


class TextChunks:
    """
    Restartable chunk sequence.

    Every iter() call starts chunking from the beginning, so the batch
    processor can count chunks on one pass and dispatch them on another.

    Usage:
    ------
    chunks = TextChunks(material.content, 4000)
    total = sum(1 for _ in chunks)
    for chunk in chunks:
        ...
    """

    def __init__(self, text: str, max_chunk_size: Optional[int] = None):
        self.text = text
        self.max_chunk_size = (
            max_chunk_size if max_chunk_size is not None else settings.CHUNK_SIZE_CHARS
        )
        if self.max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be at least 1, got {self.max_chunk_size}")

    def __iter__(self) -> Iterator[str]:
        return chunk_text(self.text, self.max_chunk_size)

    def __repr__(self) -> str:
        return f"TextChunks(chars={len(self.text)}, max_chunk_size={self.max_chunk_size})"

