# backend/cybersiege/api/scenarios.py
"""
Scenarios API endpoints.

Scenarios are read directly from YAML/JSON files in the scenarios directory.
No database required - files are immediately visible when added.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cybersiege.api.deps import get_current_player, get_scenario_loader, to_http_exception
from cybersiege.exceptions import CyberSiegeError
from cybersiege.services.scenario_filesystem import ScenarioLoader, scenario_to_dict

router = APIRouter(prefix="/scenarios", tags=["scenarios"])


class ScenarioListItem(BaseModel):
    id: str
    name: str
    description: str
    type: str
    category: str
    difficulty: int
    timeLimit: int
    objectiveCount: int
    requiredSkills: List[str]


class ScenarioDetail(ScenarioListItem):
    objectives: List[Dict[str, Any]]
    assets: List[Dict[str, Any]]
    availableTools: List[Dict[str, Any]]


class ScenariosListResponse(BaseModel):
    scenarios: List[ScenarioListItem]
    total: int


@router.get("")
def list_scenarios(
    category: Optional[str] = None,
    difficulty: Optional[int] = None,
    loader: ScenarioLoader = Depends(get_scenario_loader),
    player_id: str = Depends(get_current_player),
) -> ScenariosListResponse:
    """
    List all available mission scenarios.

    Args:
        category: Filter by category (red-team, blue-team, mixed)
        difficulty: Filter by difficulty (1-5)
    """
    scenarios = loader.list_scenarios(category=category, difficulty=difficulty)
    return ScenariosListResponse(
        scenarios=[ScenarioListItem(**scenario_to_dict(s)) for s in scenarios],
        total=len(scenarios),
    )


@router.get("/{scenario_id}")
def get_scenario(
    scenario_id: str,
    loader: ScenarioLoader = Depends(get_scenario_loader),
    player_id: str = Depends(get_current_player),
) -> ScenarioDetail:
    """Get a scenario with its objectives, assets and tools."""
    try:
        scenario = loader.get_scenario(scenario_id)
    except CyberSiegeError as e:
        raise to_http_exception(e)
    return ScenarioDetail(**scenario_to_dict(scenario, include_details=True))
