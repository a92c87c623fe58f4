# backend/cybersiege/config.py
import os
import platform
import subprocess
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


def _get_default_data_dir() -> str:
    """Get platform-appropriate data directory.

    On macOS, use ~/.cybersiege so the directory is user-writable.
    On Linux, use /data/cybersiege for production deployments.
    """
    if platform.system() == "Darwin":
        return os.path.expanduser("~/.cybersiege")
    else:
        return "/data/cybersiege"


def _get_version() -> str:
    """Get version from APP_VERSION env, VERSION file, git tag, or fallback to 'dev'."""
    if (version := os.environ.get("APP_VERSION")) and version != "dev":
        return version

    version_file = os.path.join(os.path.dirname(os.path.dirname(__file__)), "VERSION")
    try:
        with open(version_file) as f:
            if version := f.read().strip():
                return version
    except (FileNotFoundError, IOError):
        pass

    try:
        result = subprocess.run(
            ["git", "describe", "--tags", "--abbrev=0"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            # v0.3.0 -> 0.3.0
            return result.stdout.strip().lstrip("v")
    except (subprocess.SubprocessError, FileNotFoundError):
        pass

    return "dev"


class Settings(BaseSettings):
    app_version: str = _get_version()
    app_name: str = "CyberSiege"

    # Database (mission sessions)
    database_url: str = "sqlite:///" + os.path.join(_get_default_data_dir(), "cybersiege.db")

    # Scenario definitions (YAML/JSON files)
    scenarios_dir: str = os.environ.get(
        "SCENARIOS_DIR", os.path.join(_get_default_data_dir(), "scenarios")
    )

    # === Command Interpreter ===
    # Artificial processing delay applied to terminal commands
    command_delay_min_ms: int = 100
    command_delay_max_ms: int = 500

    # === Competitive rooms ===
    room_grace_period_seconds: float = 60.0  # Completed rooms stay visible this long
    action_success_probability: float = 0.7
    red_victory_compromises: int = 3  # Distinct unprotected targets red must compromise
    room_time_limit_minutes: int = 60  # Blue wins once this much time has elapsed

    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
