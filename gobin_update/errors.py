"""
Exception taxonomy for gobin-update.

Per-candidate errors (metadata, construction, install, filesystem) are
caught by the orchestrator, logged and skipped. SetupError is the only
process-fatal error.
"""

from __future__ import annotations


class GoUpdateError(Exception):
    """
    Base exception for all gobin-update errors.

    Attributes:
        message: Human-readable error message
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SetupError(GoUpdateError):
    """Raised when the environment cannot be set up (no GOBIN, no go CLI)."""
    pass


class BuildInfoError(GoUpdateError):
    """Raised when build metadata cannot be read from an executable."""
    pass


class MetadataRejectedError(GoUpdateError):
    """Raised when a binary was built with a toolchain older than the minimum."""
    pass


class ResolutionError(GoUpdateError):
    """Raised when the latest version of a module cannot be resolved."""
    pass


class NetworkError(ResolutionError):
    """
    Raised when a version lookup fails in transport.

    Attributes:
        status: HTTP status code, if a response was received
        body: Truncated response body, if a response was received
    """
    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        """Whether the upstream answered 404 or 410."""
        return self.status in (404, 410)


class ParseError(ResolutionError):
    """Raised when a version lookup response is malformed."""
    pass


class NoVersionsError(ResolutionError):
    """Raised when no stable version is available for a module."""
    pass


class ConstructionError(GoUpdateError):
    """Raised when an artefact cannot be constructed from its metadata."""
    pass


class InstallError(GoUpdateError):
    """
    Raised when an external install action fails.

    Attributes:
        command: Command that was executed
        exit_code: Process exit code (-1 if the process never ran)
        stderr: Captured standard error output
    """
    def __init__(
        self,
        message: str,
        command: tuple[str, ...] = (),
        exit_code: int = -1,
        stderr: str = "",
    ):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class FilesystemStepError(GoUpdateError):
    """
    Raised when a toolchain symlink swap step fails.

    Attributes:
        step: Name of the failing step
        path: Path the step operated on
    """
    def __init__(self, message: str, step: str, path: str):
        self.step = step
        self.path = path
        super().__init__(message)
