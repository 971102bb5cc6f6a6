"""
API dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from studypilot.services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """The service container built in the application lifespan."""
    return request.app.state.container


Container = Annotated[ServiceContainer, Depends(get_container)]
