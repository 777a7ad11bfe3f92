"""Git workspaces used to apply cherry-picks."""

from cherry_pick_action.git.executor import Executor, Workspace
from cherry_pick_action.git.noop import NoopExecutor, NoopWorkspace
from cherry_pick_action.git.shell import ShellExecutor, ShellWorkspace

__all__ = [
    "Executor",
    "NoopExecutor",
    "NoopWorkspace",
    "ShellExecutor",
    "ShellWorkspace",
    "Workspace",
]
