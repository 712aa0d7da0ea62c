"""Workspace error taxonomy.

Every failure that leaves the remote catalog client or the document cache is
one of these classes; raw transport or store exceptions never cross those
boundaries.
"""

from docspace.components.workspace.models import BatchReport


class WorkspaceError(Exception):
    """Base class for all workspace errors."""

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthenticated(WorkspaceError):
    """No session; remote calls are suppressed."""


class Unauthorized(WorkspaceError):
    """The catalog answered 401 although a session token was sent."""

    status_code = 401


class NotFound(WorkspaceError):
    """The catalog answered 404 (storage root or folder absent)."""

    status_code = 404


class ValidationFailed(WorkspaceError):
    """The catalog answered 422."""

    status_code = 422

    def __init__(self, message: str = "", errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.errors = errors or {}


class RateLimited(WorkspaceError):
    """The catalog answered 429."""

    status_code = 429

    def __init__(self, message: str = "", retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ServerError(WorkspaceError):
    """The catalog answered 5xx (or another unexpected status)."""

    def __init__(self, message: str = "", status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class TransportError(WorkspaceError):
    """The request never produced a usable response (network, timeout, bad JSON)."""


class NotConfigured(WorkspaceError):
    """A project has no remote folder path even after re-fetching it."""

    def __init__(self, project_id: str):
        super().__init__(f"Project {project_id} has no remote folder configured")
        self.project_id = project_id


class QuotaExceeded(WorkspaceError):
    """A cache write was rejected after trash eviction."""

    def __init__(self, key: str, required: int, available: int):
        super().__init__(
            f"Storage limit exceeded for '{key}': need {required} bytes, {max(available, 0)} available"
        )
        self.key = key
        self.required = required
        self.available = available


class StorageUnavailable(WorkspaceError):
    """The persistent store failed for a reason other than running out of space."""


class PartialFailure(WorkspaceError):
    """Every item of a batch failed; carries the per-item report."""

    def __init__(self, report: BatchReport, message: str = ""):
        super().__init__(message or f"All {len(report.failed)} item(s) failed")
        self.report = report


def message_for(error: WorkspaceError) -> str:
    """User-facing notification text for an error."""
    if isinstance(error, Unauthorized):
        return "Your session is not authorized for this folder. Please sign in again."
    if isinstance(error, NotFound):
        return "Storage folder not found. Check the project's storage configuration."
    if isinstance(error, NotConfigured):
        return "This project has no storage folder configured."
    if isinstance(error, ValidationFailed):
        return error.message
    if isinstance(error, RateLimited):
        if error.retry_after:
            return f"Too many requests. Try again in {error.retry_after} seconds."
        return "Too many requests. Please try again shortly."
    if isinstance(error, QuotaExceeded):
        return "Local storage is full. Please delete some files or empty the trash."
    if isinstance(error, ServerError):
        return "The document service is unavailable. Please try again later."
    if isinstance(error, TransportError):
        return "Could not reach the document service."
    return error.message
