"""Offline content persistence."""

from studypilot.services.offline.content_store import LocalContentStore

__all__ = ["LocalContentStore"]
