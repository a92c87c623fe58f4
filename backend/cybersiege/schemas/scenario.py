# backend/cybersiege/schemas/scenario.py
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class ScenarioCategory(str, Enum):
    RED_TEAM = "red-team"
    BLUE_TEAM = "blue-team"
    MIXED = "mixed"


class ObjectiveKind(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    BONUS = "bonus"


class CompletionCriteria(BaseModel):
    """Predicate template matched against a resolved action."""
    action_type: str
    target: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Objective(BaseModel):
    """A scorable mission goal. Identity is its position in the scenario's list."""
    description: str
    kind: ObjectiveKind = Field(ObjectiveKind.PRIMARY, alias="type")
    points: int = Field(100, ge=0)
    completion_criteria: CompletionCriteria
    completed: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Asset(BaseModel):
    """A simulated in-world resource (network, server, workstation, tool...)."""
    name: str
    type: str
    value: int = 1
    vulnerabilities: List[str] = []
    properties: Dict[str, Any] = {}

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Tool(BaseModel):
    name: str
    description: str = ""
    usage: Optional[str] = None


class Scenario(BaseModel):
    """Immutable mission template loaded from the scenarios directory."""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    type: str = "training"  # training, competitive
    category: ScenarioCategory
    difficulty: int = Field(..., ge=1, le=5)
    objectives: List[Objective] = []
    assets: List[Asset] = []
    available_tools: List[Tool] = []
    initial_state: Dict[str, Any] = Field(default_factory=dict)
    time_limit: int = Field(60, ge=1)  # minutes
    required_skills: List[str] = []

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    def assets_of_type(self, *types: str) -> List[Asset]:
        return [a for a in self.assets if a.type in types]

    def get_asset(self, name: str) -> Optional[Asset]:
        return next((a for a in self.assets if a.name == name), None)

    def events(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Scripted world events declared in the initial state (e.g. the attack being investigated)."""
        events = self.initial_state.get("events") or []
        if event_type is None:
            return list(events)
        return [e for e in events if e.get("type") == event_type]
