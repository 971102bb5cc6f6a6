"""Database package: declarative base, sessions and Redis clients."""

from studypilot.db.base import Base, BaseModel

__all__ = ["Base", "BaseModel"]
