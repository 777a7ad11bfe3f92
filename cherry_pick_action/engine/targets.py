"""
Target resolution from pull request labels and manual overrides.

A label such as ``cherry-pick/release/v0.25`` names the branch ``release/v0.25``
when the configured prefix is ``cherry-pick/``. Manual overrides (the
``target_branches`` input) bypass labels and are merged with label-derived
targets, keeping first-seen order and dropping duplicates by branch.
"""

from collections.abc import Iterable

from cherry_pick_action.exceptions import ConfigurationError, InvalidTargetError
from cherry_pick_action.models.domain import Target

_REFS_HEADS = "refs/heads/"
_WHITESPACE = " \t\n\r"
_FORBIDDEN_REF_CHARS = "~^:?*[]@{\\"


def collect_targets(label_names: Iterable[str], prefix: str) -> list[Target]:
    """Extract deduplicated targets from label names.

    Args:
        label_names: Labels on the pull request
        prefix: Case-insensitive label prefix, e.g. ``cherry-pick/``

    Returns:
        Targets in first-seen order

    Raises:
        ConfigurationError: If the prefix is empty or whitespace-only
    """
    prefix = prefix.strip()
    if not prefix:
        raise ConfigurationError("label prefix cannot be empty")

    targets: list[Target] = []
    seen: set[str] = set()

    for name in label_names:
        branch = _parse_branch(name, prefix)
        if not branch or branch in seen:
            continue
        seen.add(branch)
        targets.append(Target(source_label=name, branch=branch))

    return targets


def _parse_branch(label_name: str, prefix: str) -> str:
    label_name = label_name.strip()
    if not label_name:
        return ""

    if not label_name.lower().startswith(prefix.lower()):
        return ""

    return normalize_branch(label_name[len(prefix) :])


def normalize_branch(branch: str) -> str:
    """Trim whitespace and slashes and drop a ``refs/heads/`` prefix.

    Returns an empty string when nothing is left.
    """
    branch = branch.strip().lstrip("/")

    if branch[: len(_REFS_HEADS)].lower() == _REFS_HEADS:
        branch = branch[len(_REFS_HEADS) :]
    elif branch.rstrip("/").lower() == _REFS_HEADS.rstrip("/"):
        return ""

    return branch.strip().strip("/").strip()


def manual_targets(branches: Iterable[str]) -> list[Target]:
    """Build targets from operator-supplied branch names."""
    targets = []
    for raw in branches:
        trimmed = raw.strip()
        if not trimmed:
            continue
        normalized = normalize_branch(trimmed)
        if not normalized:
            continue
        targets.append(Target(source_label=f"input:{trimmed}", branch=normalized))
    return targets


def merge_targets(*groups: Iterable[Target]) -> list[Target]:
    """Merge target groups preserving order and removing duplicate branches."""
    result: list[Target] = []
    seen: set[str] = set()

    for group in groups:
        for target in group:
            if target.branch in seen:
                continue
            seen.add(target.branch)
            result.append(target)

    return result


def validate_targets(targets: Iterable[Target]) -> None:
    """Ensure every target branch is a legal git ref name.

    Raises:
        InvalidTargetError: On the first branch that is rejected
    """
    for target in targets:
        problem = _branch_name_problem(target.branch)
        if problem:
            raise InvalidTargetError(problem, branch=target.branch, source_label=target.source_label)


def _branch_name_problem(branch: str) -> str | None:
    if not branch:
        return "branch cannot be empty"
    if any(ch in _WHITESPACE for ch in branch):
        return "branch cannot contain whitespace"
    if ".." in branch:
        return "branch cannot contain '..'"
    if any(ch in _FORBIDDEN_REF_CHARS for ch in branch):
        return "branch contains forbidden git characters"
    return None


def branches(targets: Iterable[Target]) -> list[str]:
    """Branch names of the targets, in order."""
    return [t.branch for t in targets]


def sorted_branches(targets: Iterable[Target]) -> list[str]:
    """Deduplicated, sorted branch names."""
    return sorted(set(branches(targets)))
