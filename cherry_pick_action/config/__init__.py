"""Configuration for the cherry-pick action.

Example:
    >>> from cherry_pick_action.config import ActionSettings
    >>> settings = ActionSettings.from_env()
    >>> settings.label_prefix
    'cherry-pick/'
"""

from cherry_pick_action.config.settings import ActionSettings, parse_branch_list

__all__ = ["ActionSettings", "parse_branch_list"]
