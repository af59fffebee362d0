"""
Exception hierarchy for the sync platform.
Every custom exception inherits from SyncPlatformError.
"""

from typing import Optional


class SyncPlatformError(Exception):
    """Base class for every exception raised by this project."""


class ConfigurationError(SyncPlatformError):
    """Raised when settings or environment variables are invalid."""


class NotFoundError(SyncPlatformError):
    """Raised when a store lookup finds nothing."""


class DiscoveryError(SyncPlatformError):
    """Raised when a sample cannot be parsed at all."""


class PathResolutionError(SyncPlatformError):
    """Raised when a nested path cannot be read or written."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{message} (path: {path})")
        self.path = path


class TransformError(SyncPlatformError):
    """Raised when a record cannot be transformed."""

    def __init__(self, message: str, field_path: Optional[str] = None):
        if field_path:
            message = f"{message} (field: {field_path})"
        super().__init__(message)
        self.field_path = field_path


class MappingError(TransformError):
    """Raised for an unknown transformation function name."""


class PipelineError(SyncPlatformError):
    """Failure of an external capability during a pipeline run."""


class FetchError(PipelineError):
    """The source connector failed to fetch."""


class PushError(PipelineError):
    """The target connector failed to push."""


class ScheduleParseError(SyncPlatformError):
    """Raised for a schedule string that is not a positive duration."""


class JobAlreadyScheduledError(SyncPlatformError):
    """A job already exists for the connection."""


class JobNotFoundError(SyncPlatformError):
    """No job exists for the connection."""
