"""Custom exception hierarchy for the cherry-pick action.

This module defines a structured exception hierarchy that separates the
failure classes the orchestrator has to tell apart: configuration problems
abort a run, remote-service failures may be retried, git failures are recorded
against a single target.

Exception Hierarchy:
    CherryPickError (base)
    ├── ConfigurationError
    │   └── InvalidTargetError
    ├── GitOperationError
    │   └── CherryPickConflictError
    ├── ExternalServiceError
    │   └── BranchNotFoundError
    └── WorkflowError

Retryability is a flag carried by the error rather than a separate type, so
any transport can mark its own failures. Query it with :func:`is_retryable`.

Example Usage:
    >>> from cherry_pick_action.exceptions import ExternalServiceError, is_retryable
    >>> try:
    ...     await client.get_pull_request("rancher", "repo", 7)
    ... except ExternalServiceError as e:
    ...     if is_retryable(e):
    ...         schedule_retry()
"""

from collections.abc import Sequence


class CherryPickError(Exception):
    """Base exception for all cherry-pick action errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(CherryPickError):
    """Configuration-related errors.

    Raised before any target is touched when the run cannot proceed as
    configured.

    Examples:
        - Empty label prefix
        - Unsupported conflict strategy or log format
        - Missing GitHub token
        - Enterprise base URL without upload URL
    """

    pass


class InvalidTargetError(ConfigurationError):
    """A target branch name violates git ref naming rules.

    Attributes:
        branch: The offending branch name
        source_label: Label (or override) the branch came from
    """

    def __init__(self, message: str, branch: str = "", source_label: str = "") -> None:
        self.branch = branch
        self.source_label = source_label
        super().__init__(f"invalid branch {branch!r} from label {source_label!r}: {message}")
        self.message = message


class GitOperationError(CherryPickError):
    """A git subprocess failed.

    Carries the full argument list and the combined stdout/stderr output so
    the failure can be diagnosed from the recorded reason alone.

    Attributes:
        args_list: Arguments passed to the git binary
        output: Combined stdout and stderr of the process
        returncode: Exit status, or None if the process could not start
    """

    def __init__(
        self,
        message: str,
        args: Sequence[str] | None = None,
        output: str = "",
        returncode: int | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Short description (e.g. "exit status 1")
            args: Arguments passed to git
            output: Combined process output
            returncode: Process exit status
        """
        self.args_list = list(args or [])
        self.output = output
        self.returncode = returncode

        full_message = message
        if self.args_list:
            full_message = f"git {' '.join(self.args_list)}: {message}"
        if output:
            full_message = f"{full_message}\n{output}"

        super().__init__(full_message)
        self.message = message


class CherryPickConflictError(GitOperationError):
    """``git cherry-pick`` stopped, typically because of conflicts."""

    pass


class ExternalServiceError(CherryPickError):
    """Remote service communication errors.

    Raised when a call to the hosting service fails. ``retryable`` marks
    transient failures (rate limiting, 5xx, timeouts, accepted-but-pending
    responses) that may succeed if repeated.

    Attributes:
        status_code: HTTP status code (if applicable)
        response_text: Response body text (if applicable)
        retryable: Whether repeating the call may succeed
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
            retryable: Whether the failure is transient
        """
        self.status_code = status_code
        self.response_text = response_text
        self.retryable = retryable

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class BranchNotFoundError(ExternalServiceError):
    """The requested branch does not exist in the repository."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"branch not found: {branch}", status_code=404)


class WorkflowError(CherryPickError):
    """Run-level failures that are not configuration problems.

    Examples:
        - Source commit SHA could not be determined
        - One or more targets failed (raised by the runner after reporting)
    """

    pass


def is_retryable(exc: BaseException | None) -> bool:
    """Report whether an error resulted from a transient remote failure.

    Walks the ``__cause__``/``__context__`` chain so wrapped errors keep
    their classification.
    """
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if isinstance(exc, ExternalServiceError) and exc.retryable:
            return True
        exc = exc.__cause__ or exc.__context__
    return False
