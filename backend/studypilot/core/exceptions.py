"""
Domain exceptions.

Transient failures are retried by the processing pipeline; anything derived
from NonRetryableError is surfaced immediately.
"""


class StudyPilotError(Exception):
    """Base class for all domain errors."""
    pass


# ================================
# Processing
# ================================

class TransientProcessingError(StudyPilotError):
    """A recoverable failure of an external call (network, rate limit)."""
    pass


class NonRetryableError(StudyPilotError):
    """A failure that retrying cannot fix."""
    pass


class AnalysisParseError(NonRetryableError):
    """The content analysis response was not the expected JSON object."""

    def __init__(self, detail: str):
        super().__init__(f"Failed to parse analysis response: {detail}")
        self.detail = detail


class ExtractionError(NonRetryableError):
    """Text extraction produced no usable content."""
    pass


class TaskNotFoundError(StudyPilotError):
    """An expected processing task is missing for a material."""
    pass


class InvalidTaskTransitionError(StudyPilotError):
    """A task status update would move the task backwards."""

    def __init__(self, task_id: int, current: str, requested: str):
        super().__init__(
            f"Task {task_id} cannot move from '{current}' to '{requested}'"
        )
        self.task_id = task_id
        self.current = current
        self.requested = requested


class MaterialNotFoundError(StudyPilotError):
    """No study material exists with the given id."""

    def __init__(self, material_id: int):
        super().__init__(f"Study material {material_id} not found")
        self.material_id = material_id


# ================================
# Offline content
# ================================

class NoOfflineContentError(StudyPilotError):
    """No synchronized snapshot is stored locally."""

    def __init__(self, message: str = "No offline content available"):
        super().__init__(message)


class StorageLimitExceededError(StudyPilotError):
    """Saving an offline item would exceed the configured storage cap."""

    def __init__(self, required_bytes: int, limit_bytes: int):
        super().__init__(
            f"Storage limit exceeded: {required_bytes} bytes > {limit_bytes} bytes"
        )
        self.required_bytes = required_bytes
        self.limit_bytes = limit_bytes
