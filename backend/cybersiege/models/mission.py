# backend/cybersiege/models/mission.py
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from cybersiege.models.base import Base, StringIdMixin, TimestampMixin


class MissionRecord(Base, StringIdMixin, TimestampMixin):
    """Persisted mission session; the full session document lives in `payload`."""
    __tablename__ = "mission_sessions"

    player_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    scenario_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # active, completed, abandoned
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
