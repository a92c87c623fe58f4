# backend/cybersiege/services/builtin_verbs.py
"""General and filesystem verbs available in every mission."""
from cybersiege.exceptions import UsageError
from cybersiege.schemas.scenario import ScenarioCategory
from cybersiege.services.verb_registry import CommandContext, Verb, handles
from cybersiege.services.virtual_fs import render_objectives

USER = "hacker"
SYSTEM_NAME = "CyberSiege"
SYSTEM_INFO = "CyberSiege 1.0 cybersim 5.15.0 #1 2025-04-01 x86_64 GNU/Linux"
CLEAR_SCREEN = "\n" * 50

GENERAL_COMMANDS = [
    ("help", "Display this help message"),
    ("status", "Show current mission status"),
    ("objectives", "List mission objectives"),
    ("history", "Show command history"),
    ("!<n>", "Re-run the nth most recent command"),
    ("clear", "Clear the terminal"),
]

LINUX_COMMANDS = [
    ("ls [dir]", "List directory contents"),
    ("pwd", "Print working directory"),
    ("cd [dir]", "Change directory"),
    ("cat [file]", "Display file contents"),
    ("whoami", "Print current user"),
    ("date", "Show current date/time"),
    ("uname [-a]", "Print system information"),
]

RECON_COMMANDS = [
    ("scan network --type <type>", "Scan the network (types: basic, advanced, full)"),
    ("scan server --target <ip> --type <type>", "Scan a server (types: port, service, stealth, vuln)"),
]

RESPONSE_COMMANDS = [
    ("identify incident --type <incident-type>", "Identify an attack in progress"),
    ("isolate system --status <status>", "Isolate systems with the given status"),
    ("analyze malware --type forensic", "Forensic analysis of the malware sample"),
    ("restore system --type from-backup", "Restore infected systems from backup"),
]

REPORTING_COMMANDS = [
    ("create report --type incident", "Generate the incident report"),
    ("implement security --type preventive", "Apply preventive security improvements"),
]


def _section(title, commands):
    width = max(len(usage) for usage, _ in commands) + 2
    lines = [f"{title}:"]
    lines.extend(f"  {usage.ljust(width)}- {description}" for usage, description in commands)
    lines.append("")
    return lines


@handles(Verb.HELP)
def _help(ctx: CommandContext) -> str:
    category = ctx.scenario.category
    lines = ["=== AVAILABLE COMMANDS ===", ""]
    lines += _section("General Commands", GENERAL_COMMANDS)
    lines += _section("Linux Commands", LINUX_COMMANDS)

    if category in (ScenarioCategory.RED_TEAM, ScenarioCategory.MIXED):
        lines += _section("Reconnaissance Commands", RECON_COMMANDS)
    if category in (ScenarioCategory.BLUE_TEAM, ScenarioCategory.MIXED):
        lines += _section("Incident Response Commands", RESPONSE_COMMANDS)
        lines += _section("Reporting Commands", REPORTING_COMMANDS)

    if ctx.scenario.available_tools:
        lines.append("Available Tools:")
        for tool in ctx.scenario.available_tools:
            lines.append(f"  {tool.name} - {tool.description}")
            if tool.usage:
                lines.append(f"    Usage: {tool.usage}")
        lines.append("")

    lines.append("Note: Additional commands may be available based on your current mission.")
    lines.append("Refer to the mission objectives and tutorial for specific command examples.")
    return "\n".join(lines)


@handles(Verb.HISTORY)
def _history(ctx: CommandContext) -> str:
    history = ctx.session.command_history
    lines = ["=== COMMAND HISTORY ==="]
    if not history:
        lines.append("  No commands in history")
    total = len(history)
    for index, entry in enumerate(history):
        lines.append(f"  {total - index}: {entry.command}")
    return "\n".join(lines)


@handles(Verb.CLEAR)
def _clear(ctx: CommandContext) -> str:
    return CLEAR_SCREEN


@handles(Verb.STATUS)
def _status(ctx: CommandContext) -> str:
    session = ctx.session
    done = sum(1 for o in session.objectives if o.completed)
    elapsed_minutes = int(session.elapsed(ctx.now).total_seconds() // 60)
    lines = [
        "=== MISSION STATUS ===",
        f"Scenario: {ctx.scenario.name}",
        f"Mode: {session.mode.value}",
        f"Team: {session.team.value}",
        f"Status: {session.status.value}",
        f"Score: {session.score}",
        f"Objectives: {done}/{len(session.objectives)} completed",
        f"Elapsed: {elapsed_minutes} / {ctx.scenario.time_limit} minutes",
    ]
    return "\n".join(lines)


@handles(Verb.OBJECTIVES)
def _objectives(ctx: CommandContext) -> str:
    return render_objectives(ctx.session.objectives)


@handles(Verb.LS)
def _ls(ctx: CommandContext) -> str:
    # Option switches such as -la are accepted and ignored
    target = next((a for a in ctx.command.args if not a.startswith("-")), None)
    entries = ctx.fs.list_directory(target)
    if entries is None:
        return f"ls: cannot access '{target}': No such file or directory"
    return "  ".join(entries)


@handles(Verb.PWD)
def _pwd(ctx: CommandContext) -> str:
    return ctx.fs.pwd()


@handles(Verb.CD)
def _cd(ctx: CommandContext) -> str:
    target = ctx.command.arg(0) or "~"
    if ctx.fs.change_directory(target) is None:
        return f"cd: {target}: No such directory"
    return ""


@handles(Verb.CAT)
def _cat(ctx: CommandContext) -> str:
    name = ctx.command.arg(0)
    if not name:
        raise UsageError("Usage: cat <filename>")
    content = ctx.fs.read_file(name)
    if content is None:
        return f"cat: {name}: No such file or directory"
    return content


@handles(Verb.WHOAMI)
def _whoami(ctx: CommandContext) -> str:
    return USER


@handles(Verb.DATE)
def _date(ctx: CommandContext) -> str:
    return ctx.now.strftime("%a %b %d %H:%M:%S UTC %Y")


@handles(Verb.UNAME)
def _uname(ctx: CommandContext) -> str:
    return SYSTEM_INFO if ctx.command.has_token("-a") else SYSTEM_NAME
