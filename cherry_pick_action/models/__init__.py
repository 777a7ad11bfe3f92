"""Domain models shared by the orchestrator, providers and reporting."""

from cherry_pick_action.models.domain import (
    CreatePROptions,
    IssueComment,
    PRMetadata,
    PRRef,
    RunResult,
    Target,
    TargetResult,
)

__all__ = [
    "CreatePROptions",
    "IssueComment",
    "PRMetadata",
    "PRRef",
    "RunResult",
    "Target",
    "TargetResult",
]
