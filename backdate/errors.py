"""Error taxonomy shared by the planner, the engine and the git backend.

Every failure carries a stable ``ErrorCode`` plus a short suggestion that the
CLI prints under the message. ``GenerationCancelled`` is a signal rather than
a failure: callers decide whether to roll back using its ``applied_count``.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable identifiers for every error the tool can surface."""
    NOT_A_GIT_REPO = "NOT_A_GIT_REPO"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_CONFIG = "INVALID_CONFIG"
    GIT_OPERATION_FAILED = "GIT_OPERATION_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    USER_CANCELLED = "USER_CANCELLED"
    UNKNOWN = "UNKNOWN"


ERROR_SUGGESTIONS: dict[ErrorCode, str] = {
    ErrorCode.NOT_A_GIT_REPO: 'Run "git init" to create a repository, or pass --repo with an existing one.',
    ErrorCode.INVALID_DATE_RANGE: "Use YYYY-MM-DD dates with the start date on or before the end date.",
    ErrorCode.INVALID_CONFIG: "Check your configuration file or command options.",
    ErrorCode.GIT_OPERATION_FAILED: "Check your git installation and the repository state.",
    ErrorCode.NETWORK_ERROR: "Check your connection and access to the remote repository.",
    ErrorCode.USER_CANCELLED: "Operation was cancelled.",
    ErrorCode.UNKNOWN: "An unexpected error occurred.",
}


class BackdateError(Exception):
    """Base class for all errors raised by backdate."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self._suggestion = suggestion
        self.retryable = retryable

    @property
    def suggestion(self) -> str:
        return self._suggestion or ERROR_SUGGESTIONS[self.code]

    def __str__(self) -> str:
        return self.message


class InvalidRangeError(BackdateError):
    code = ErrorCode.INVALID_DATE_RANGE


class InvalidConfigError(BackdateError):
    code = ErrorCode.INVALID_CONFIG


class NotARepositoryError(BackdateError):
    code = ErrorCode.NOT_A_GIT_REPO


class VcsOperationError(BackdateError):
    code = ErrorCode.GIT_OPERATION_FAILED


class NetworkError(BackdateError):
    code = ErrorCode.NETWORK_ERROR


class GenerationCancelled(BackdateError):
    """Raised by the engine when a cancellation request stops a run.

    ``applied_count`` is exactly the number of commits created before the
    cancellation check fired.
    """

    code = ErrorCode.USER_CANCELLED

    def __init__(self, applied_count: int, total_planned: int, errors: list[str] | None = None):
        super().__init__(f"Operation cancelled after {applied_count} of {total_planned} commits")
        self.applied_count = applied_count
        self.total_planned = total_planned
        self.errors = list(errors or [])
