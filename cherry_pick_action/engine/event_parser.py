"""
Parsing of GitHub ``pull_request`` / ``pull_request_target`` event payloads.

Only the fields the cherry-pick flow needs are extracted. Missing fields fall
back to empty values; the runner decides which of them are required.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cherry_pick_action.exceptions import ConfigurationError

ACTION_CLOSED = "closed"
ACTION_LABELED = "labeled"
HANDLED_ACTIONS = frozenset({ACTION_CLOSED, ACTION_LABELED})


@dataclass
class PullRequestEvent:
    """The subset of a pull_request event used by the action."""

    action: str = ""
    owner: str = ""
    repo: str = ""
    number: int = 0
    labels: list[str] = field(default_factory=list)
    merged: bool = False
    merge_commit_sha: str = ""
    head_sha: str = ""
    title: str = ""
    body: str = ""
    assignees: list[str] = field(default_factory=list)
    label_name: str = ""
    """Label that triggered a ``labeled`` event."""

    @property
    def is_handled_action(self) -> bool:
        return self.action in HANDLED_ACTIONS


def _obj(data: Any, key: str) -> dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _names(items: Any, key: str) -> list[str]:
    if not isinstance(items, list):
        return []
    names = []
    for item in items:
        if isinstance(item, dict):
            name = _str(item, key)
            if name:
                names.append(name)
    return names


def parse_pull_request_event(data: Any) -> PullRequestEvent:
    """Build a PullRequestEvent from a decoded event payload.

    Raises:
        ConfigurationError: If the payload is not a JSON object
    """
    if not isinstance(data, dict):
        raise ConfigurationError("decode pull_request event: payload must be a JSON object")

    repository = _obj(data, "repository")
    pull_request = _obj(data, "pull_request")

    number = pull_request.get("number")
    title = pull_request.get("title")
    body = pull_request.get("body")

    return PullRequestEvent(
        action=_str(data, "action").lower(),
        owner=_str(_obj(repository, "owner"), "login"),
        repo=_str(repository, "name"),
        number=number if isinstance(number, int) and not isinstance(number, bool) else 0,
        labels=_names(pull_request.get("labels"), "name"),
        merged=pull_request.get("merged") is True,
        merge_commit_sha=_str(pull_request, "merge_commit_sha"),
        head_sha=_str(_obj(pull_request, "head"), "sha"),
        title=title if isinstance(title, str) else "",
        body=body if isinstance(body, str) else "",
        assignees=_names(pull_request.get("assignees"), "login"),
        label_name=_str(_obj(data, "label"), "name"),
    )


def parse_pull_request_event_file(path: str | Path) -> PullRequestEvent:
    """Read and parse the event JSON written by the Actions runner.

    Raises:
        ConfigurationError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"open event file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"decode pull_request event: {e}") from e

    return parse_pull_request_event(data)
