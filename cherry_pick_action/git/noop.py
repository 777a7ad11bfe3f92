"""Executor that performs no git operations.

Every workspace call succeeds without side effects. Used for dry runs and
tests that only exercise orchestration.
"""

from cherry_pick_action.git.executor import Executor, Workspace


class NoopWorkspace(Workspace):
    """Workspace whose operations all succeed immediately."""

    async def checkout_branch(self, branch: str) -> None:
        pass

    async def create_branch_from(self, branch: str, from_branch: str) -> None:
        pass

    async def cherry_pick(self, commit: str) -> None:
        pass

    async def abort_cherry_pick(self) -> None:
        pass

    async def commit_allow_empty(self, message: str) -> None:
        pass

    async def push_branch(self, branch: str) -> None:
        pass

    async def cleanup(self) -> None:
        pass


class NoopExecutor(Executor):
    """Executor returning :class:`NoopWorkspace` instances."""

    async def prepare(self, owner: str, repo: str) -> Workspace:
        return NoopWorkspace()
