# backend/cybersiege/models/__init__.py
from cybersiege.models.base import Base
from cybersiege.models.mission import MissionRecord

__all__ = [
    "Base",
    "MissionRecord",
]
