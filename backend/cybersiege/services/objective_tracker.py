# backend/cybersiege/services/objective_tracker.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cybersiege.schemas.scenario import CompletionCriteria, Objective

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedAction:
    """What a domain verb actually did, in the shape objectives are written against."""
    action_type: str
    target: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)


def _subset_matches(expected: Any, actual: Any) -> bool:
    # Nested maps match on the keys the criteria names; everything else is plain equality
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        return all(
            key in actual and _subset_matches(value, actual[key])
            for key, value in expected.items()
        )
    return expected == actual


def criteria_matches(criteria: CompletionCriteria, action: ResolvedAction) -> bool:
    if criteria.action_type != action.action_type:
        return False
    if criteria.target is not None and criteria.target != action.target:
        return False
    return _subset_matches(criteria.parameters, action.parameters)


def try_complete(objectives: List[Objective], action: ResolvedAction) -> Optional[Objective]:
    """Mark the first pending objective matching `action` as completed.

    At most one objective changes per call, even when several criteria match.
    Returns the completed objective, or None when nothing matched.
    """
    for objective in objectives:
        if objective.completed:
            continue
        if criteria_matches(objective.completion_criteria, action):
            objective.completed = True
            logger.debug(f"Objective completed by {action.action_type}: {objective.description}")
            return objective
    return None


def achievement_line(objective: Objective) -> str:
    return f"[Achievement Unlocked] {objective.description} (+{objective.points} points)"
