# backend/cybersiege/services/scenario_filesystem.py
"""
Filesystem-based scenario loader.

Scenarios are YAML (or JSON) files stored in the configured scenarios directory.
No database required. Files are read directly from disk with caching based on
modification time. Scenarios are immutable once loaded; sessions take their own
copies of anything they mutate.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pydantic
import yaml

from cybersiege.config import get_settings
from cybersiege.exceptions import NotFoundError, ValidationError
from cybersiege.schemas.scenario import Scenario

logger = logging.getLogger(__name__)

SCENARIO_SUFFIXES = (".yaml", ".yml", ".json")


def _is_file_stem(scenario_id: str) -> bool:
    return bool(scenario_id) and scenario_id not in (".", "..") and not any(
        sep in scenario_id for sep in ("/", "\\", "\x00")
    )


class ScenarioCache:
    """Simple cache for parsed scenarios with modification time tracking."""

    def __init__(self):
        self._cache: Dict[str, tuple[float, Scenario]] = {}  # {filename: (mtime, scenario)}

    def get(self, file_path: Path) -> Optional[Scenario]:
        """Get cached scenario if file hasn't changed."""
        key = str(file_path)
        if key not in self._cache:
            return None

        cached_mtime, scenario = self._cache[key]
        try:
            if file_path.stat().st_mtime == cached_mtime:
                return scenario
        except OSError:
            pass

        # File changed or deleted
        del self._cache[key]
        return None

    def set(self, file_path: Path, scenario: Scenario):
        try:
            self._cache[str(file_path)] = (file_path.stat().st_mtime, scenario)
        except OSError:
            pass

    def invalidate(self, file_path: Optional[Path] = None):
        if file_path:
            self._cache.pop(str(file_path), None)
        else:
            self._cache.clear()


class ScenarioLoader:
    """Reads scenario definitions from a directory.

    Args:
        scenarios_dir: Directory to scan. Defaults to `settings.scenarios_dir`.
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = Path(scenarios_dir or get_settings().scenarios_dir)
        self._cache = ScenarioCache()

    def _files(self) -> List[Path]:
        if not self.scenarios_dir.exists():
            logger.warning(f"Scenarios directory not found: {self.scenarios_dir}")
            return []
        return sorted(
            p for p in self.scenarios_dir.iterdir()
            if p.suffix in SCENARIO_SUFFIXES and p.name != "manifest.yaml"
        )

    def _parse(self, file_path: Path) -> Scenario:
        """Parse one scenario file, raising ValidationError if it is malformed."""
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                if file_path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise ValidationError(f"Invalid scenario file {file_path.name}: {e}") from e

        if not isinstance(data, dict) or not data:
            raise ValidationError(f"Empty scenario file: {file_path.name}")

        # Use seedId if present, otherwise the filename
        data.setdefault("id", data.pop("seedId", None) or data.pop("seed_id", None) or file_path.stem)
        try:
            return Scenario.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid scenario file {file_path.name}: {e}") from e

    def _load(self, file_path: Path) -> Scenario:
        scenario = self._cache.get(file_path)
        if scenario is None:
            scenario = self._parse(file_path)
            self._cache.set(file_path, scenario)
        return scenario

    def list_scenarios(
        self,
        category: Optional[str] = None,
        difficulty: Optional[int] = None,
    ) -> List[Scenario]:
        """
        List all well-formed scenarios.

        Args:
            category: Filter by category (red-team, blue-team, mixed)
            difficulty: Filter by difficulty (1-5)

        Returns:
            List of Scenario objects; malformed files are logged and skipped
        """
        scenarios = []
        for file_path in self._files():
            try:
                scenario = self._load(file_path)
            except ValidationError as e:
                logger.warning(f"Skipping scenario file: {e}")
                continue

            if category and scenario.category.value != category:
                continue
            if difficulty and scenario.difficulty != difficulty:
                continue
            scenarios.append(scenario)

        return scenarios

    def get_scenario(self, scenario_id: str) -> Scenario:
        """
        Get a scenario by id (filename stem or seedId) or by its unique name.

        Raises:
            NotFoundError: no file defines that scenario
            ValidationError: the matching file is malformed
        """
        # Only bare file stems map to a path; anything else can match by id or name below
        if _is_file_stem(scenario_id):
            for suffix in SCENARIO_SUFFIXES:
                file_path = self.scenarios_dir / f"{scenario_id}{suffix}"
                if file_path.exists():
                    return self._load(file_path)

        # Fall back to scanning all files for a matching seedId or name
        for file_path in self._files():
            try:
                scenario = self._load(file_path)
            except ValidationError:
                continue
            if scenario_id in (scenario.id, scenario.name):
                return scenario

        raise NotFoundError(f"Scenario '{scenario_id}' not found")

    def refresh_cache(self):
        """Clear the scenario cache to force re-reading from disk."""
        self._cache.invalidate()
        logger.info("Scenario cache invalidated")


def scenario_to_dict(scenario: Scenario, include_details: bool = False) -> Dict[str, Any]:
    """Convert a Scenario to a dictionary for API response."""
    result = {
        "id": scenario.id,
        "name": scenario.name,
        "description": scenario.description,
        "type": scenario.type,
        "category": scenario.category.value,
        "difficulty": scenario.difficulty,
        "timeLimit": scenario.time_limit,
        "objectiveCount": len(scenario.objectives),
        "requiredSkills": scenario.required_skills,
    }

    if include_details:
        result["objectives"] = [
            o.model_dump(mode="json", by_alias=True, exclude={"completed"})
            for o in scenario.objectives
        ]
        result["assets"] = [a.model_dump(mode="json", by_alias=True) for a in scenario.assets]
        result["availableTools"] = [t.model_dump(mode="json") for t in scenario.available_tools]

    return result
