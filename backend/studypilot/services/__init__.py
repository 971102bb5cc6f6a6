"""Business logic services."""

from studypilot.services.container import ServiceContainer, build_container

__all__ = [
    "ServiceContainer",
    "build_container",
]
