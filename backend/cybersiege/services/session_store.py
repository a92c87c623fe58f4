# backend/cybersiege/services/session_store.py
import logging
from typing import Callable, List

import pydantic
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cybersiege.exceptions import NotFoundError, TransientStorageError, ValidationError
from cybersiege.models import MissionRecord
from cybersiege.schemas.mission import MissionSession, SessionStatus

logger = logging.getLogger(__name__)


class SessionStore:
    """Persists mission sessions as JSON documents in the `mission_sessions` table.

    Failures are surfaced, never retried: SQLAlchemy errors become
    TransientStorageError and undecodable payloads become ValidationError.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _decode(record: MissionRecord) -> MissionSession:
        try:
            return MissionSession.model_validate(record.payload)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Mission session {record.id} is malformed: {e}") from e

    def load(self, session_id: str) -> MissionSession:
        try:
            with self.session_factory() as db:
                record = db.get(MissionRecord, session_id)
                if record is None:
                    raise NotFoundError(f"Mission session {session_id} not found")
                return self._decode(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load mission session {session_id}: {e}")
            raise TransientStorageError(f"Failed to load mission session {session_id}") from e

    def save(self, session: MissionSession) -> None:
        payload = session.model_dump(mode="json", by_alias=True)
        try:
            with self.session_factory() as db:
                record = db.get(MissionRecord, session.id)
                if record is None:
                    record = MissionRecord(id=session.id, player_id=session.player_id)
                    db.add(record)
                record.scenario_name = session.scenario_name
                record.status = session.status.value
                record.payload = payload
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save mission session {session.id}: {e}")
            raise TransientStorageError(f"Failed to save mission session {session.id}") from e

    def list_active(self, player_id: str) -> List[MissionSession]:
        query = (
            select(MissionRecord)
            .where(MissionRecord.player_id == player_id)
            .where(MissionRecord.status == SessionStatus.ACTIVE.value)
            .order_by(MissionRecord.created_at.desc())
        )
        try:
            with self.session_factory() as db:
                return [self._decode(r) for r in db.scalars(query).all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list mission sessions for {player_id}: {e}")
            raise TransientStorageError(f"Failed to list mission sessions for {player_id}") from e
