"""Domain layer: errors and schemas."""

from .errors import (
    AlreadyRunning,
    AuthDenied,
    BackendError,
    Conflict,
    ErrorCodes,
    PreconditionFailed,
    ShopError,
    ValidationError,
)
from .schemas import (
    ArtifactRef,
    ArtifactRefs,
    Job,
    JobStatus,
    TimeEntry,
    Totals,
)

__all__ = [
    "ShopError",
    "ValidationError",
    "PreconditionFailed",
    "AlreadyRunning",
    "Conflict",
    "AuthDenied",
    "BackendError",
    "ErrorCodes",
    "Job",
    "JobStatus",
    "TimeEntry",
    "ArtifactRef",
    "ArtifactRefs",
    "Totals",
]
