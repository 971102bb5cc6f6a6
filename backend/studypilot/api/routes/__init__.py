"""
API route modules.

Import all route modules here for easy access.
"""

from studypilot.api.routes import materials, sync

__all__ = ["materials", "sync"]
