"""
Abstract interfaces for the git workspace executor.

An :class:`Executor` prepares an isolated clone of a repository. The returned
:class:`Workspace` exposes the git primitives the orchestrator needs to build
a cherry-pick branch and publish it. A workspace belongs to exactly one target
and is removed by :meth:`Workspace.cleanup`; using it as an async context
manager guarantees the cleanup runs.
"""

from abc import ABC, abstractmethod
from types import TracebackType

import structlog

log = structlog.get_logger(__name__)


class Workspace(ABC):
    """A checked-out repository used for a single target."""

    @abstractmethod
    async def checkout_branch(self, branch: str) -> None:
        """Check out ``branch``, tracking the remote branch when it exists.

        Raises:
            GitOperationError: If the branch cannot be checked out
        """
        pass

    @abstractmethod
    async def create_branch_from(self, branch: str, from_branch: str) -> None:
        """Create (or reset) ``branch`` at the remote tip of ``from_branch``."""
        pass

    @abstractmethod
    async def cherry_pick(self, commit: str) -> None:
        """Apply ``commit`` on top of the current branch.

        Merge commits are replayed against their first parent.

        Raises:
            CherryPickConflictError: If the pick stops on conflicts
            GitOperationError: If git fails for another reason
        """
        pass

    @abstractmethod
    async def abort_cherry_pick(self) -> None:
        """Abort an in-progress cherry-pick. No-op when none is in progress."""
        pass

    @abstractmethod
    async def commit_allow_empty(self, message: str) -> None:
        """Record an empty commit (used for placeholder pull requests)."""
        pass

    @abstractmethod
    async def push_branch(self, branch: str) -> None:
        """Push ``branch`` to the remote with ``--force-with-lease``."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Remove the workspace from disk."""
        pass

    async def __aenter__(self) -> "Workspace":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.cleanup()
        except Exception as e:
            log.warning("workspace_cleanup_failed", error=str(e))


class Executor(ABC):
    """Factory for workspaces."""

    @abstractmethod
    async def prepare(self, owner: str, repo: str) -> Workspace:
        """Clone ``owner/repo`` into a fresh workspace.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name

        Returns:
            A ready-to-use workspace. The caller owns it and must clean it up.

        Raises:
            GitOperationError: If cloning or configuring the clone fails
            ValueError: If owner or repo is empty
        """
        pass
