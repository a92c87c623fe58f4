# backend/cybersiege/services/virtual_fs.py
"""
Virtual filesystem presented to the mission terminal.

Layout:
    ~                    mission-brief.txt, objectives.txt
    /tools               one file per scenario tool (needs declared tools)
    /assets              one directory per visible asset (needs declared assets)
    /assets/<asset>      info.txt
    /logs                activity.log, scan-results.log (needs at least one logged action)

A directory only exists while its precondition holds, so `ls` and `cd` can never
reach it otherwise.
"""
import re
from typing import List, Optional

from cybersiege.schemas.mission import Action, MissionSession
from cybersiege.schemas.scenario import Asset, Objective, Scenario, Tool

HOME = "~"
HOME_PATH = "/home/hacker"
TOOLS, ASSETS, LOGS = "tools", "assets", "logs"
TOP_LEVEL_DIRS = (TOOLS, ASSETS, LOGS)

MISSION_BRIEF = "mission-brief.txt"
OBJECTIVES_FILE = "objectives.txt"
ACTIVITY_LOG = "activity.log"
SCAN_RESULTS_LOG = "scan-results.log"
ASSET_INFO = "info.txt"


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def _to_path(parts: List[str]) -> str:
    return HOME if not parts else "/" + "/".join(parts)


def _to_parts(path: str) -> List[str]:
    if path == HOME:
        return []
    return [p for p in path.split("/") if p]


def format_action(action: Action) -> str:
    line = f"[{action.timestamp.isoformat()}] {action.action_type}"
    if action.target:
        line += f" on {action.target}"
    for key, value in action.parameters.items():
        line += f" --{key} {value}"
    return line


def render_mission_brief(scenario: Scenario) -> str:
    lines = [
        "=== MISSION BRIEF ===",
        "",
        scenario.description,
        "",
        f"Mission Type: {scenario.type}",
        f"Category: {scenario.category.value}",
        f"Difficulty: {scenario.difficulty}",
        f"Time Limit: {scenario.time_limit} minutes",
    ]
    return "\n".join(lines)


def render_objectives(objectives: List[Objective]) -> str:
    lines = ["=== MISSION OBJECTIVES ===", ""]
    if not objectives:
        lines.append("No objectives defined for this mission.")
    for i, objective in enumerate(objectives, start=1):
        lines.append(f"{i}. {objective.description}")
        lines.append(f"   Type: {objective.kind.value}")
        lines.append(f"   Points: {objective.points}")
        lines.append(f"   Status: {'[COMPLETED]' if objective.completed else '[PENDING]'}")
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def render_activity_log(session: MissionSession) -> str:
    lines = ["=== ACTIVITY LOG ===", ""]
    lines.extend(format_action(a) for a in session.actions)
    return "\n".join(lines)


def render_scan_results(session: MissionSession) -> str:
    lines = ["=== SCAN RESULTS ===", ""]
    for action in session.actions:
        if action.action_type != "scan":
            continue
        lines.append(f"[{action.timestamp.isoformat()}] Scan Type: {action.parameters.get('scanType')}")
        if action.target:
            lines.append(f"Target: {action.target}")
        if action.parameters.get("targetIp"):
            lines.append(f"Address: {action.parameters['targetIp']}")
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def render_tool(tool: Tool) -> str:
    lines = [f"{tool.name} - {tool.description}" if tool.description else tool.name]
    if tool.usage:
        lines.append(f"Usage: {tool.usage}")
    return "\n".join(lines)


def render_asset_info(asset: Asset) -> str:
    lines = [
        f"Name: {asset.name}",
        f"Type: {asset.type}",
        f"Value: {asset.value}",
    ]
    for key, value in asset.properties.items():
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        elif isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items())
        lines.append(f"{key}: {value}")
    if asset.vulnerabilities:
        lines.append(f"Vulnerabilities: {', '.join(asset.vulnerabilities)}")
    return "\n".join(lines)


class VirtualFilesystem:
    """Read-only view of the session/scenario pair; only `change_directory` mutates the session."""

    def __init__(self, session: MissionSession, scenario: Scenario):
        self.session = session
        self.scenario = scenario

    @property
    def cwd(self) -> str:
        return self.session.current_directory or HOME

    def pwd(self) -> str:
        cwd = self.cwd
        return HOME_PATH if cwd == HOME else f"{HOME_PATH}{cwd}"

    def is_available(self, directory: str) -> bool:
        if directory == TOOLS:
            return bool(self.scenario.available_tools)
        if directory == ASSETS:
            return bool(self.scenario.assets)
        if directory == LOGS:
            return bool(self.session.actions)
        return False

    def visible_assets(self) -> List[Asset]:
        visible = set(self.session.visible_assets)
        return [a for a in self.scenario.assets if a.name in visible]

    def asset_for_slug(self, slug: str) -> Optional[Asset]:
        return next((a for a in self.visible_assets() if slugify(a.name) == slug), None)

    def tool_for_slug(self, slug: str) -> Optional[Tool]:
        return next((t for t in self.scenario.available_tools if slugify(t.name) == slug), None)

    def exists(self, path: str) -> bool:
        parts = _to_parts(path)
        if not parts:
            return True
        if parts[0] not in TOP_LEVEL_DIRS or not self.is_available(parts[0]):
            return False
        if len(parts) == 1:
            return True
        if len(parts) == 2 and parts[0] == ASSETS:
            return self.asset_for_slug(parts[1]) is not None
        return False

    def _walk(self, target: str, start: List[str]) -> List[str]:
        parts = list(start)
        for part in target.split("/"):
            if part in ("", "."):
                continue
            if part == "..":
                if parts:
                    parts.pop()
                continue
            parts.append(part)
        return parts

    def resolve(self, target: str) -> Optional[str]:
        """Resolve a directory argument to an existing path, or None."""
        if target in ("", HOME, "/", "~/"):
            return HOME
        if target.startswith("~/"):
            target = "/" + target[2:]

        if target.startswith("/"):
            candidates = [self._walk(target, [])]
        else:
            # Top-level names resolve from anywhere, as in the mission briefing examples
            candidates = [self._walk(target, _to_parts(self.cwd)), self._walk(target, [])]

        for parts in candidates:
            path = _to_path(parts)
            if self.exists(path):
                return path
        return None

    def change_directory(self, target: Optional[str]) -> Optional[str]:
        """Move the cursor; returns the new path, or None (cursor unchanged) if invalid."""
        path = self.resolve(target or HOME)
        if path is None:
            return None
        self.session.current_directory = path
        return path

    def list_directory(self, path: Optional[str] = None) -> Optional[List[str]]:
        path = self.cwd if path is None else self.resolve(path)
        if path is None or not self.exists(path):
            return None

        parts = _to_parts(path)
        if not parts:
            entries = [f"{d}/" for d in TOP_LEVEL_DIRS if self.is_available(d)]
            return entries + [MISSION_BRIEF, OBJECTIVES_FILE]
        if parts == [TOOLS]:
            return [slugify(t.name) for t in self.scenario.available_tools]
        if parts == [ASSETS]:
            return [f"{slugify(a.name)}/" for a in self.visible_assets()]
        if parts == [LOGS]:
            return [ACTIVITY_LOG, SCAN_RESULTS_LOG]
        return [ASSET_INFO]

    def read_file(self, name: str) -> Optional[str]:
        """Return the contents of a file relative to the cursor, or None if it does not exist."""
        directory, _, filename = name.rpartition("/")
        if directory or name.startswith("/"):
            path = self.resolve(directory or "/")
        else:
            path = self.cwd
        if path is None or not self.exists(path):
            return None

        parts = _to_parts(path)
        if not parts:
            if filename == MISSION_BRIEF:
                return render_mission_brief(self.scenario)
            if filename == OBJECTIVES_FILE:
                return render_objectives(self.session.objectives)
        elif parts == [LOGS]:
            if filename == ACTIVITY_LOG:
                return render_activity_log(self.session)
            if filename == SCAN_RESULTS_LOG:
                return render_scan_results(self.session)
        elif parts == [TOOLS]:
            tool = self.tool_for_slug(filename)
            if tool:
                return render_tool(tool)
        elif len(parts) == 2 and filename == ASSET_INFO:
            asset = self.asset_for_slug(parts[1])
            if asset:
                return render_asset_info(asset)
        return None
