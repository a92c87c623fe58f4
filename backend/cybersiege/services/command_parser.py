# backend/cybersiege/services/command_parser.py
"""Tokenizer for terminal commands.

`scan server --target 10.0.0.5 --type port` parses to verb "scan", positional
argument "server" and flags {"target": "10.0.0.5", "type": "port"}. Flags are read
left to right, so a repeated flag keeps its last value. A `--flag` with no value
(end of input, or followed by another `--flag`) is dropped.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ParsedCommand:
    raw: str
    verb: str
    args: List[str] = field(default_factory=list)
    flags: Dict[str, str] = field(default_factory=dict)
    tokens: List[str] = field(default_factory=list)  # everything after the verb, unparsed

    def arg(self, index: int) -> Optional[str]:
        return self.args[index] if index < len(self.args) else None

    def flag(self, name: str) -> Optional[str]:
        return self.flags.get(name)

    def has_token(self, token: str) -> bool:
        return token in self.tokens


def parse_command(raw: str) -> ParsedCommand:
    parts = raw.split()
    if not parts:
        return ParsedCommand(raw=raw, verb="")

    verb, tokens = parts[0].lower(), parts[1:]
    args: List[str] = []
    flags: Dict[str, str] = {}

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("--") and len(token) > 2:
            name = token[2:]
            if i + 1 < len(tokens) and not tokens[i + 1].startswith("--"):
                flags[name] = tokens[i + 1]
                i += 2
                continue
            i += 1
            continue
        args.append(token)
        i += 1

    return ParsedCommand(raw=raw, verb=verb, args=args, flags=flags, tokens=tokens)
