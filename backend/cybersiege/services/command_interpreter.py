# backend/cybersiege/services/command_interpreter.py
"""
Command interpreter for mission terminals.

Turns one raw command string into a text report, mutating the session in place:

1. a `command` Action is appended for every invocation, before anything else;
2. `!n` is expanded against history (invalid indexes stop here);
3. the command is recorded in history and dispatched to its verb handler;
4. handlers raise UsageError for bad arguments, which becomes the report.

Callers serialize commands per session; the interpreter has no locking of its own.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from cybersiege.exceptions import UsageError
from cybersiege.schemas.mission import MissionSession
from cybersiege.schemas.scenario import Scenario
from cybersiege.services import builtin_verbs, mission_verbs  # noqa: F401  (register handlers)
from cybersiege.services.command_parser import parse_command
from cybersiege.services.verb_registry import HANDLERS, META_VERBS, CommandContext, Verb, unhandled_verbs
from cybersiege.services.virtual_fs import VirtualFilesystem
from cybersiege.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

_missing = unhandled_verbs()
if _missing:
    raise RuntimeError(f"Verbs without a handler: {', '.join(v.value for v in _missing)}")

PROMPT = "hacker@cyber-siege"
INVALID_HISTORY_INDEX = "Invalid history index. Use 'history' to view command history."


@dataclass
class CommandResult:
    result: str
    session: MissionSession


def format_prompt(cwd: str, command: str) -> str:
    return f"{PROMPT}:{cwd}# {command}"


class CommandInterpreter:
    """Resolves terminal commands against a session/scenario pair."""

    def __init__(
        self,
        clock: Clock = utcnow,
        rng: Optional[random.Random] = None,
        delay_range: Tuple[float, float] = (0.1, 0.5),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.delay_range = delay_range
        self.sleep = sleep

    async def _processing_delay(self) -> None:
        low, high = self.delay_range
        if high <= 0:
            return
        await self.sleep(self.rng.uniform(low, high))

    async def execute(self, session: MissionSession, scenario: Scenario, raw: str) -> CommandResult:
        now = self.clock()
        command = raw.strip()
        session.log_action("command", now, parameters={"command": command})

        if not command:
            return CommandResult("", session)

        prefix = ""
        if command.startswith("!"):
            expanded = self._expand_history(session, command[1:])
            if expanded is None:
                return CommandResult(INVALID_HISTORY_INDEX, session)
            prefix = f"Re-executing: {expanded}\n"
            command = expanded

        session.record_command(command, now)
        report = await self._dispatch(session, scenario, command, now)
        return CommandResult(prefix + report, session)

    @staticmethod
    def _expand_history(session: MissionSession, index: str) -> Optional[str]:
        try:
            n = int(index)
        except ValueError:
            return None
        return session.recent_command(n)

    async def _dispatch(self, session: MissionSession, scenario: Scenario, command: str, now) -> str:
        parsed = parse_command(command)
        verb = Verb.lookup(parsed.verb)
        fs = VirtualFilesystem(session, scenario)

        if verb in META_VERBS:
            logger.debug(f"Session {session.id}: {verb.value}")
            return self._run(verb, CommandContext(session, scenario, parsed, fs, now))

        echo = format_prompt(fs.cwd, command)
        await self._processing_delay()

        if verb is None:
            logger.debug(f"Session {session.id}: unknown command '{parsed.verb}'")
            output = f"Command '{parsed.verb}' not found. Use 'help' to see available commands."
        else:
            logger.debug(f"Session {session.id}: {verb.value} {' '.join(parsed.tokens)}")
            output = self._run(verb, CommandContext(session, scenario, parsed, fs, now))

        return f"{echo}\n{output}" if output else echo

    @staticmethod
    def _run(verb: Verb, ctx: CommandContext) -> str:
        try:
            return HANDLERS[verb](ctx)
        except UsageError as e:
            return str(e)
