"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

from studypilot.api.routes import materials, sync

# Create main API router
api_router = APIRouter()

api_router.include_router(sync.router)
api_router.include_router(materials.router)
