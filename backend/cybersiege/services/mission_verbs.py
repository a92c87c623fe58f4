# backend/cybersiege/services/mission_verbs.py
"""
Domain verbs: reconnaissance, incident response and reporting.

Each handler validates its flags (raising UsageError with the usage text), looks
the target up in the scenario, renders a report from the asset/event properties
and hands the resolved action to `CommandContext.resolve` for objective tracking.
Lookups that find nothing return an explanatory line and resolve nothing.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from cybersiege.exceptions import UsageError
from cybersiege.schemas.scenario import Asset
from cybersiege.services.verb_registry import CommandContext, Verb, handles

SCAN_USAGE = (
    "Usage: scan <network|server> --type <type> [--target <ip>]\n"
    "Network scan types: basic, advanced, full\n"
    "Server scan types: port, service, stealth, vuln"
)
SCAN_NETWORK_USAGE = "Usage: scan network --type <basic|advanced|full>"
SCAN_SERVER_USAGE = "Usage: scan server --target <ip> --type <port|service|stealth|vuln>"
NETWORK_SCAN_TYPES = ("basic", "advanced", "full")
IDENTIFY_USAGE = "Usage: identify incident --type <incident-type>"
ISOLATE_USAGE = "Usage: isolate system --status <status>"
ANALYZE_USAGE = "Usage: analyze <target> --type <analysis-type>"
RESTORE_USAGE = "Usage: restore system --type <restore-type>"
CREATE_USAGE = "Usage: create report --type <report-type>"
IMPLEMENT_USAGE = "Usage: implement security --type <improvement-type>"

REMEDIATIONS = {
    "outdated-software": [
        "Updating all systems to latest security patches",
        "Implementing automated patch management",
    ],
    "weak-authentication": [
        "Enforcing strong password policies",
        "Implementing multi-factor authentication",
    ],
    "phishing-susceptible": [
        "Deploying email filtering solutions",
        "Scheduling security awareness training",
    ],
}


def _require(ctx: CommandContext, flag: str, usage: str) -> tuple:
    """Return (target, flag value) or raise UsageError when either is missing."""
    target = ctx.command.arg(0)
    value = ctx.command.flag(flag)
    if not target or not value:
        raise UsageError(usage)
    return target, value


def _humanize(key: str) -> str:
    # malwareFamily -> malware family
    return re.sub(r"([A-Z])", r" \1", key).lower()


def _attack_event(ctx: CommandContext, attack_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
    for event in ctx.scenario.events("attack"):
        if attack_type is None or event.get("attackType") == attack_type:
            return event
    return None


def _find_asset(ctx: CommandContext, keyword: str) -> Optional[Asset]:
    return next((a for a in ctx.scenario.assets if keyword in a.name.lower()), None)


def _services(asset: Asset) -> List[Tuple[Optional[str], str]]:
    """(port, service) pairs from a `services` property given as a port map or a plain list."""
    services = asset.properties.get("services") or {}
    if isinstance(services, dict):
        return [(str(port), str(name)) for port, name in services.items()]
    if isinstance(services, (list, tuple)):
        return [(None, str(name)) for name in services]
    return [(None, str(services))]


# ---------------------------------------------------------------------------
# Reconnaissance
# ---------------------------------------------------------------------------

@handles(Verb.SCAN)
def _scan(ctx: CommandContext) -> str:
    target, scan_type = _require(ctx, "type", SCAN_USAGE)
    if target == "network":
        return _scan_network(ctx, scan_type)
    if target == "server":
        address = ctx.command.flag("target")
        if not address:
            raise UsageError(SCAN_SERVER_USAGE)
        return _scan_server(ctx, address, scan_type)
    raise UsageError(f"Invalid scan target: {target}\n{SCAN_USAGE}")


def _scan_network(ctx: CommandContext, scan_type: str) -> str:
    if scan_type not in NETWORK_SCAN_TYPES:
        raise UsageError(f"Unknown scan type: {scan_type}\n{SCAN_NETWORK_USAGE}")

    network = next(
        (a for a in ctx.scenario.assets_of_type("network") if a.properties.get("hosts")),
        None,
    )
    if network is None:
        return "No network found to scan"

    hosts: List[str] = list(network.properties["hosts"])
    subnet = network.properties.get("subnet") or f"{hosts[0]}/24"
    lines = [f"Scanning network {subnet}...", ""]
    lines.extend(f"Host {host} is up" for host in hosts)

    discovered = [network.name] + [
        a.name for a in ctx.scenario.assets if a.properties.get("ip") in hosts
    ]
    revealed = ctx.session.reveal_assets(discovered)
    if revealed:
        lines.append("")
        lines.append(f"Discovered assets: {', '.join(revealed)}")

    lines += ctx.resolve(
        "scan", "network", {"scanType": scan_type},
        result={"hosts": hosts, "revealed": revealed},
    )
    return "\n".join(lines)


def _scan_server(ctx: CommandContext, address: str, scan_type: str) -> str:
    server = next(
        (a for a in ctx.scenario.assets_of_type("server") if a.properties.get("ip") == address),
        None,
    )
    if server is None:
        return f"No such host: {address}"

    ports = server.properties.get("ports") or []
    if scan_type == "port":
        lines = [f"Port scan results for {address}:", ""]
        lines.extend(f"{port}/tcp open" for port in ports)
    elif scan_type == "service":
        lines = [f"Service detection results for {address}:", ""]
        lines.extend(
            f"{port}/tcp open  {service}" if port else f"open  {service}"
            for port, service in _services(server)
        )
    elif scan_type == "stealth":
        lines = [f"Stealth scan results for {address}:", ""]
        lines.extend(f"{port}/tcp open  (TCP SYN scan)" for port in ports)
    elif scan_type == "vuln":
        lines = [f"Vulnerability scan results for {address}:", ""]
        lines.extend(f"[!] {tag}" for tag in server.vulnerabilities)
        if not server.vulnerabilities:
            lines.append("No known vulnerabilities detected")
    else:
        raise UsageError(f"Unknown scan type: {scan_type}\n{SCAN_SERVER_USAGE}")

    ctx.session.reveal_assets([server.name])
    lines += ctx.resolve(
        "scan", "server", {"scanType": scan_type, "targetIp": address},
        result={"asset": server.name},
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Incident response
# ---------------------------------------------------------------------------

@handles(Verb.IDENTIFY)
def _identify(ctx: CommandContext) -> str:
    target, incident_type = _require(ctx, "type", IDENTIFY_USAGE)
    event = _attack_event(ctx, incident_type)
    if event is None:
        return f"No {incident_type} incident detected"

    lines = [
        "Incident Analysis Results:",
        "",
        f"Type: {incident_type.upper()} attack",
        f"Initial Infection: {event.get('target', 'unknown')}",
        f"Attack Vector: {event.get('source', 'unknown')}",
        f"Timestamp: {event.get('timestamp', 'unknown')}",
    ]
    details = event.get("details") or {}
    if details:
        lines.append("")
        lines.append("Details:")
        lines.extend(f"- {_humanize(key)}: {value}" for key, value in details.items())

    lines += ctx.resolve("identify", target, {"incidentType": incident_type})
    return "\n".join(lines)


@handles(Verb.ISOLATE)
def _isolate(ctx: CommandContext) -> str:
    target, status = _require(ctx, "status", ISOLATE_USAGE)
    systems = [
        a for a in ctx.scenario.assets_of_type("server", "workstation")
        if a.properties.get("status") == status
    ]
    if not systems:
        return f"No systems found with status: {status}"

    lines = ["Isolating infected systems:", ""]
    for system in systems:
        lines.append(f"[+] {system.name} ({system.properties.get('ip', 'no address')})")
        if system.properties.get("os"):
            lines.append(f"    OS: {system.properties['os']}")
        services = _services(system)
        if services:
            lines.append(f"    Services: {', '.join(name for _, name in services)}")
        lines.append("    Status: Isolated")
        lines.append("")

    isolated = [s.name for s in systems]
    ctx.session.remember("isolatedAssets", isolated)
    lines += ctx.resolve("isolate", target, {"systemStatus": status}, result={"isolated": isolated})
    return "\n".join(lines).rstrip("\n")


@handles(Verb.ANALYZE)
def _analyze(ctx: CommandContext) -> str:
    target, analysis_type = _require(ctx, "type", ANALYZE_USAGE)
    if _find_asset(ctx, "forensic") is None:
        return "Error: Forensic Analysis Toolkit not available"
    if target != "malware" or analysis_type != "forensic":
        raise UsageError(f"Invalid analysis target or type\n{ANALYZE_USAGE}")

    event = _attack_event(ctx)
    details = (event or {}).get("details")
    if not details:
        return "No malware artifacts found for analysis"

    lines = [
        "Malware Analysis Results:",
        "",
        f"Family: {details.get('malwareFamily', 'unknown')}",
        f"Affected Files: {details.get('encryptedFiles', 'unknown')}",
        f"Propagation Method: {details.get('spreadMethod', 'unknown')}",
        f"Initial Compromise: {event.get('source', 'unknown')}",
    ]
    lines += ctx.resolve("analyze", target, {"analysisType": analysis_type})
    return "\n".join(lines)


@handles(Verb.RESTORE)
def _restore(ctx: CommandContext) -> str:
    target, restore_type = _require(ctx, "type", RESTORE_USAGE)
    if restore_type != "from-backup":
        raise UsageError("Invalid restore type. Available type: from-backup")

    backup = _find_asset(ctx, "backup")
    if backup is None or backup.properties.get("status") != "operational":
        return "Error: Backup server not available"

    lines = [
        "Restoring systems from backup:",
        "",
        f"Backup server: {backup.properties.get('ip', 'unknown')}",
        f"Last backup: {backup.properties.get('lastBackup', 'unknown')}",
        "",
    ]
    infected = [a for a in ctx.scenario.assets if a.properties.get("status") == "infected"]
    for asset in infected:
        lines.append(f"[+] Restoring {asset.name}")
        lines.append("    Status: Restore Complete")
        lines.append("")

    restored = [a.name for a in infected]
    ctx.session.remember("restoredAssets", restored)
    lines += ctx.resolve("restore", target, {"restoreType": restore_type}, result={"restored": restored})
    return "\n".join(lines).rstrip("\n")


# ---------------------------------------------------------------------------
# Reporting and hardening
# ---------------------------------------------------------------------------

@handles(Verb.CREATE)
def _create(ctx: CommandContext) -> str:
    target, report_type = _require(ctx, "type", CREATE_USAGE)
    if report_type != "incident":
        raise UsageError("Invalid report type. Available type: incident")

    actions = ctx.session.resolved_actions()
    if not actions:
        return "No actions recorded for report generation"

    lines = [
        "Generating Incident Report",
        "=======================",
        "",
        "Incident Summary:",
        "-----------------",
    ]
    event = _attack_event(ctx)
    if event:
        lines.append(f"Type: {event.get('attackType', 'unknown')} attack")
        lines.append(f"Initial Vector: {event.get('source', 'unknown')}")
        lines.append(f"First Compromised System: {event.get('target', 'unknown')}")
        lines.append(f"Time of Detection: {event.get('timestamp', 'unknown')}")
    lines.append("")
    lines.append("Response Actions:")
    lines.append("----------------")
    for index, action in enumerate(actions, start=1):
        line = f"{index}. [{action.timestamp.isoformat()}] {action.action_type}"
        if action.target:
            line += f" on {action.target}"
        for key, value in action.parameters.items():
            line += f" --{key} {value}"
        lines.append(line)

    lines += ctx.resolve("create", target, {"reportType": report_type})
    return "\n".join(lines)


@handles(Verb.IMPLEMENT)
def _implement(ctx: CommandContext) -> str:
    target, improvement_type = _require(ctx, "type", IMPLEMENT_USAGE)
    if improvement_type != "preventive":
        raise UsageError("Invalid improvement type. Available type: preventive")

    vulnerabilities: List[str] = []
    for asset in ctx.scenario.assets:
        for tag in asset.vulnerabilities:
            if tag not in vulnerabilities:
                vulnerabilities.append(tag)

    lines = ["Implementing Security Improvements", "==============================", ""]
    if not vulnerabilities:
        lines.append("No outstanding vulnerabilities to address")
    for tag in vulnerabilities:
        lines.append(f"[+] Addressing: {tag}")
        for step in REMEDIATIONS.get(tag, [f"Applying security hardening for {tag}"]):
            lines.append(f"    - {step}")
        lines.append("")

    lines += ctx.resolve(
        "implement", target, {"improvementType": improvement_type},
        result={"addressed": vulnerabilities},
    )
    return "\n".join(lines).rstrip("\n")
