# backend/cybersiege/services/verb_registry.py
"""
Verb registry for the mission terminal.

Every member of `Verb` must have exactly one handler registered with `@handles`;
`CommandInterpreter` refuses to import if any verb is left unhandled.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from cybersiege.schemas.mission import MissionResult, MissionSession, SessionStatus
from cybersiege.schemas.scenario import Scenario
from cybersiege.services.command_parser import ParsedCommand
from cybersiege.services.objective_tracker import ResolvedAction, achievement_line, try_complete
from cybersiege.services.virtual_fs import VirtualFilesystem

logger = logging.getLogger(__name__)


class Verb(str, Enum):
    # General
    HELP = "help"
    HISTORY = "history"
    CLEAR = "clear"
    STATUS = "status"
    OBJECTIVES = "objectives"
    # Filesystem
    LS = "ls"
    PWD = "pwd"
    CD = "cd"
    CAT = "cat"
    WHOAMI = "whoami"
    DATE = "date"
    UNAME = "uname"
    # Mission
    SCAN = "scan"
    IDENTIFY = "identify"
    ISOLATE = "isolate"
    ANALYZE = "analyze"
    RESTORE = "restore"
    CREATE = "create"
    IMPLEMENT = "implement"

    @classmethod
    def lookup(cls, name: str) -> Optional["Verb"]:
        try:
            return cls(name.lower())
        except ValueError:
            return None


# Verbs that answer immediately, without the prompt echo or processing delay
META_VERBS = frozenset({Verb.HELP, Verb.HISTORY, Verb.CLEAR, Verb.STATUS, Verb.OBJECTIVES})


@dataclass
class CommandContext:
    session: MissionSession
    scenario: Scenario
    command: ParsedCommand
    fs: VirtualFilesystem
    now: datetime
    completed: List[str] = field(default_factory=list)

    def resolve(
        self,
        action_type: str,
        target: Optional[str],
        parameters: Dict[str, Any],
        result: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """Record a successfully resolved action and settle objective progress.

        Returns the report lines to append (achievement and mission-complete notices).
        """
        resolved = ResolvedAction(action_type=action_type, target=target, parameters=parameters)
        objective = try_complete(self.session.objectives, resolved)

        outcome = dict(result or {})
        outcome["objectiveCompleted"] = objective.description if objective else None
        self.session.log_action(action_type, self.now, target=target, parameters=parameters, result=outcome)

        if objective is None:
            return []

        self.session.award(objective)
        self.completed.append(objective.description)
        lines = ["", achievement_line(objective)]
        if self.session.is_active and self.session.primary_objectives_complete():
            self.session.finish(SessionStatus.COMPLETED, MissionResult.SUCCESS, self.now)
            logger.info(f"Mission session {self.session.id} completed with score {self.session.score}")
            lines.append(f"[Mission Complete] All primary objectives achieved. Final score: {self.session.score}")
        return lines


Handler = Callable[[CommandContext], str]

HANDLERS: Dict[Verb, Handler] = {}


def handles(verb: Verb) -> Callable[[Handler], Handler]:
    def register(func: Handler) -> Handler:
        if verb in HANDLERS:
            raise RuntimeError(f"Verb '{verb.value}' already handled by {HANDLERS[verb].__name__}")
        HANDLERS[verb] = func
        return func
    return register


def unhandled_verbs() -> List[Verb]:
    return [verb for verb in Verb if verb not in HANDLERS]
