"""Target resolution, branch naming and cherry-pick orchestration.

Key Components:
    - Orchestrator: Evaluates targets and executes cherry-picks
    - Runner: Wires settings, event data and reporting around the orchestrator
    - name_for: Deterministic cherry-pick branch names
    - collect_targets: Targets from pull request labels
"""

from cherry_pick_action.engine.naming import BranchNamingOptions, name_for
from cherry_pick_action.engine.orchestrator import Orchestrator, OrchestratorConfig
from cherry_pick_action.engine.targets import collect_targets, manual_targets, merge_targets

__all__ = [
    "BranchNamingOptions",
    "Orchestrator",
    "OrchestratorConfig",
    "collect_targets",
    "manual_targets",
    "merge_targets",
    "name_for",
]
