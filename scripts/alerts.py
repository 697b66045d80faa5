#!/usr/bin/env python3
"""Alert management CLI — lifecycle, escalation, routing rules and templates.

Usage::

    # List active alerts (optionally for one component / status)
    python scripts/alerts.py list
    python scripts/alerts.py list INGESTION acknowledged

    # Report an alert
    python scripts/alerts.py send INGESTION critical data_quality "Data quality check failed"

    # Acknowledge / resolve
    python scripts/alerts.py ack <alert-id> alice
    python scripts/alerts.py resolve <alert-id> alice

    # Reporting
    python scripts/alerts.py aggregate INGESTION 60
    python scripts/alerts.py history INGESTION 7
    python scripts/alerts.py stats

    # Escalation
    python scripts/alerts.py escalation check
    python scripts/alerts.py escalation escalate <alert-id> 2

    # Routing rules and templates
    python scripts/alerts.py rules add INGESTION critical data_quality oncall@example.com
    python scripts/alerts.py rules route INGESTION critical data_quality
    python scripts/alerts.py templates add default "Alert: {message}"
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from alertops.alerts.factory import create_alert_stack, create_store
from alertops.alerts.manager import AlertManager
from alertops.alerts.routing import Router
from alertops.alerts.rule_file import RuleFile
from alertops.alerts.templates import TemplateStore
from alertops.core.config import Settings, load_settings, validate_settings
from alertops.core.exceptions import AlertValidationError, TransientStoreError
from alertops.core.logging import setup_logging
from alertops.core.types import Alert
from alertops.notify.formatters import build_notification, format_html, format_json

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_STORE_ERROR = 2


# ── Rendering ──────────────────────────────────────────────────


def _ts(value: datetime.datetime | None) -> str:
    return value.isoformat(timespec="seconds") if value else ""


def _json_default(obj: object) -> str:
    if isinstance(obj, datetime.datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=_json_default))


def render_alerts(alerts: list[Alert]) -> str:
    """Render alerts as an ASCII table (empty string for no alerts)."""
    if not alerts:
        return ""
    header = (
        f"{'ID':<36}  {'Component':<12}  {'Level':<8}  {'Type':<16}  "
        f"{'Status':<12}  {'Esc':>3}  {'Created':<25}  Message"
    )
    lines = [header, "-" * len(header)]
    for a in alerts:
        lines.append(
            f"{a.id:<36}  {a.component[:12]:<12}  {a.severity.value:<8}  "
            f"{a.alert_type[:16]:<16}  {a.status.value:<12}  {a.escalation_level:>3}  "
            f"{_ts(a.created_at):<25}  {a.message[:60]}"
        )
    return "\n".join(lines)


def render_alert_detail(alert: Alert) -> str:
    lines = [
        f"id:               {alert.id}",
        f"component:        {alert.component}",
        f"severity:         {alert.severity.value}",
        f"type:             {alert.alert_type}",
        f"status:           {alert.status.value}",
        f"escalation_level: {alert.escalation_level}",
        f"created_at:       {_ts(alert.created_at)}",
        f"resolved_at:      {_ts(alert.resolved_at)}",
        f"message:          {alert.message}",
    ]
    if alert.metadata:
        lines.append(f"metadata:         {json.dumps(alert.metadata, sort_keys=True)}")
    return "\n".join(lines)


def _render_rows(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return ""
    columns = list(rows[0].keys())
    cells = [[_cell(r[c]) for c in columns] for r in rows]
    widths = [max(len(c), *(len(row[i]) for row in cells)) for i, c in enumerate(columns)]
    header = "  ".join(c.ljust(w) for c, w in zip(columns, widths))
    lines = [header, "-" * len(header)]
    for row in cells:
        lines.append("  ".join(v.ljust(w) for v, w in zip(row, widths)))
    return "\n".join(lines)


def _cell(value: object) -> str:
    if isinstance(value, datetime.datetime):
        return _ts(value)
    return str(value)


# ── Store-backed commands ──────────────────────────────────────


async def run_store_command(
    args: argparse.Namespace,
    manager: AlertManager,
) -> int:
    """Execute one store-backed command against *manager*."""
    cmd = args.command

    if cmd == "list":
        status = None if args.status == "all" else args.status
        alerts = await manager.list_alerts(args.component, status)
        if args.json:
            _print_json([a.model_dump(mode="json") for a in alerts])
        elif alerts:
            print(render_alerts(alerts))
        return EXIT_OK

    if cmd == "show":
        alert = await manager.show(args.alert_id)
        if alert is not None:
            if args.json:
                _print_json(alert.model_dump(mode="json"))
            else:
                print(render_alert_detail(alert))
        return EXIT_OK

    if cmd in ("ack", "acknowledge", "resolve"):
        user = args.user or "system"
        if cmd != "resolve":
            ok = await manager.acknowledge(args.alert_id, user)
            verb, past = "acknowledge", "acknowledged"
        else:
            ok = await manager.resolve(args.alert_id, user)
            verb, past = "resolve", "resolved"
        if ok:
            print(f"Alert {past}: {args.alert_id}")
            return EXIT_OK
        print(f"Failed to {verb} alert: {args.alert_id}")
        return EXIT_FAILED

    if cmd == "aggregate":
        rows = await manager.aggregate(args.component, args.window)
        _emit_rows(args, [r.model_dump() for r in rows])
        return EXIT_OK

    if cmd == "history":
        alerts = await manager.history(args.component, args.days)
        if args.json:
            _print_json([a.model_dump(mode="json") for a in alerts])
        elif alerts:
            print(render_alerts(alerts))
        return EXIT_OK

    if cmd == "stats":
        rows = await manager.stats(args.component)
        _emit_rows(args, [r.model_dump() for r in rows])
        return EXIT_OK

    if cmd == "cleanup":
        deleted = await manager.cleanup(args.days)
        print(f"Cleaned up {deleted} old alerts")
        return EXIT_OK

    if cmd == "send":
        return await _send(args, manager)

    if cmd == "escalation":
        return await _escalation(args, manager)

    print(f"Error: Unknown action: {cmd}", file=sys.stderr)
    return EXIT_FAILED


def _emit_rows(args: argparse.Namespace, rows: list[dict[str, Any]]) -> None:
    if args.json:
        _print_json(rows)
    elif rows:
        print(_render_rows(rows))


async def _send(args: argparse.Namespace, manager: AlertManager) -> int:
    metadata: dict[str, Any] | None = None
    if args.metadata:
        try:
            parsed = json.loads(args.metadata)
        except json.JSONDecodeError as exc:
            print(f"Error: metadata is not valid JSON: {exc}", file=sys.stderr)
            return EXIT_FAILED
        if parsed is not None:
            if not isinstance(parsed, dict):
                print("Error: metadata must be a JSON object", file=sys.stderr)
                return EXIT_FAILED
            metadata = parsed

    result = await manager.ingest(
        args.component,
        args.level,
        args.alert_type,
        args.message,
        metadata,
    )
    if result.deduplicated or result.alert is None:
        print("Alert deduplicated")
        return EXIT_OK

    if args.format in ("json", "html"):
        notification = build_notification(
            result.alert,
            result.recipients,
            service_name=manager.service_name,
            extra=result.alert.metadata or None,
            timestamp=result.alert.created_at,
        )
        render = format_json if args.format == "json" else format_html
        print(render(notification))
    else:
        print(f"Alert stored: {result.alert.id}")
    return EXIT_OK


async def _escalation(args: argparse.Namespace, manager: AlertManager) -> int:
    action = args.escalation_action
    if action == "check":
        count = await manager.check_escalation(args.component)
        print(f"Escalated {count} alerts")
        return EXIT_OK
    if action == "escalate":
        if await manager.escalate(args.alert_id, args.level):
            alert = await manager.show(args.alert_id)
            level = alert.escalation_level if alert else args.level
            print(f"Alert escalated to level {level}: {args.alert_id}")
            return EXIT_OK
        print(f"Failed to escalate alert: {args.alert_id}")
        return EXIT_FAILED
    # rules
    print("Escalation Rules:")
    print("=================")
    for step in manager.escalation_rules():
        print("")
        print(
            f"Level {step.level}: {step.critical_minutes} minutes "
            f"(warning: {step.warning_minutes} minutes)"
        )
        print(f"  Recipients: {', '.join(step.recipients)}")
    print("")
    print("Note: Warning alerts use 2x thresholds, Info alerts do not escalate")
    return EXIT_OK


# ── File-backed commands ───────────────────────────────────────


def run_rules_command(args: argparse.Namespace, settings: Settings) -> int:
    rule_file = RuleFile(settings.routing.rules_file)
    router = Router(settings.routing, rule_file.load())
    action = args.rules_action

    if action == "list":
        listed = router.list_rules(args.component)
        if args.json:
            _print_json([{"position": p, **r.model_dump()} for p, r in listed])
        else:
            for pos, rule in listed:
                print(f"{pos:>3}  {rule.format_line()}")
        return EXIT_OK

    if action == "add":
        rule = router.add(args.component, args.level, args.alert_type, args.route)
        rule_file.save(router.rules)
        print(f"Rule added: {':'.join(rule.key)} -> {','.join(rule.recipients)}")
        return EXIT_OK

    if action == "remove":
        target = args.target
        if len(target) == 1 and target[0].isdigit():
            removed = router.remove(int(target[0]))
            rule_file.save(router.rules)
            print("Rule removed" if removed else f"No rule at position {target[0]}")
            return EXIT_OK
        if len(target) == 3:
            count = router.remove_matching(*target)
            rule_file.save(router.rules)
            print(f"Removed {count} rule(s) matching {':'.join(target)}")
            return EXIT_OK
        print("Error: remove takes a rule position or COMPONENT LEVEL TYPE", file=sys.stderr)
        return EXIT_FAILED

    # route
    recipients = router.resolve(args.component, args.level, args.alert_type)
    print(",".join(recipients))
    return EXIT_OK


def run_templates_command(args: argparse.Namespace, settings: Settings) -> int:
    templates = TemplateStore(settings.routing.templates_dir)
    action = args.templates_action or "list"

    if action == "list":
        for template_id in templates.list():
            print(template_id)
        return EXIT_OK

    if action == "show":
        content = templates.load(args.template_id)
        if content is None:
            print(f"Template not found: {args.template_id}")
            return EXIT_FAILED
        print(content, end="")
        return EXIT_OK

    # add
    source = args.content
    if source == "-":
        content = sys.stdin.read()
    elif Path(source).is_file():
        content = Path(source).read_text()
    else:
        content = source
    templates.save(args.template_id, content)
    print(f"Template {args.template_id} saved")
    return EXIT_OK


# ── Entrypoint ─────────────────────────────────────────────────


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level or "WARNING")
    for warning in validate_settings(settings):
        logger.warning("config_warning", detail=warning)

    try:
        if args.command == "rules":
            return run_rules_command(args, settings)
        if args.command == "templates":
            return run_templates_command(args, settings)

        store = create_store(settings)
        manager, _ = create_alert_stack(settings, store=store)
        try:
            await store.connect()
            return await run_store_command(args, manager)
        finally:
            if manager.dispatcher is not None:
                await manager.dispatcher.close()
            await store.close()
    except AlertValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except TransientStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage alerts, escalation, routing rules and templates.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output raw JSON instead of tables",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List alerts")
    p.add_argument("component", nargs="?", default=None)
    p.add_argument("status", nargs="?", default="active")

    p = sub.add_parser("show", help="Show alert details")
    p.add_argument("alert_id")

    for name, help_text in (
        ("ack", "Acknowledge an alert"),
        ("acknowledge", "Acknowledge an alert"),
        ("resolve", "Resolve an alert"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("alert_id")
        p.add_argument("user", nargs="?", default="system")

    p = sub.add_parser("aggregate", help="Aggregate active alerts by component/type")
    p.add_argument("component", nargs="?", default=None)
    p.add_argument("window", nargs="?", type=int, default=None)

    p = sub.add_parser("history", help="Show alert history for a component")
    p.add_argument("component")
    p.add_argument("days", nargs="?", type=int, default=7)

    p = sub.add_parser("stats", help="Show alert statistics")
    p.add_argument("component", nargs="?", default=None)

    p = sub.add_parser("cleanup", help="Delete old resolved alerts")
    p.add_argument("days", nargs="?", type=int, default=None)

    p = sub.add_parser("send", help="Report an alert")
    p.add_argument("component")
    p.add_argument("level")
    p.add_argument("alert_type")
    p.add_argument("message")
    p.add_argument("metadata", nargs="?", default=None)
    p.add_argument("--format", choices=["text", "json", "html"], default="text")

    esc = sub.add_parser("escalation", help="Escalation actions")
    esc_sub = esc.add_subparsers(dest="escalation_action", required=True)
    p = esc_sub.add_parser("check", help="Escalate every active alert that needs it")
    p.add_argument("component", nargs="?", default=None)
    p = esc_sub.add_parser("escalate", help="Escalate one alert")
    p.add_argument("alert_id")
    p.add_argument("level", nargs="?", type=int, default=None)
    esc_sub.add_parser("rules", help="Show escalation thresholds and recipients")

    rules = sub.add_parser("rules", help="Routing rule management")
    rules_sub = rules.add_subparsers(dest="rules_action", required=True)
    p = rules_sub.add_parser("list")
    p.add_argument("component", nargs="?", default=None)
    p = rules_sub.add_parser("add")
    p.add_argument("component")
    p.add_argument("level")
    p.add_argument("alert_type")
    p.add_argument("route")
    p = rules_sub.add_parser("remove")
    p.add_argument("target", nargs="+", help="Rule position, or COMPONENT LEVEL TYPE")
    p = rules_sub.add_parser("route")
    p.add_argument("component")
    p.add_argument("level")
    p.add_argument("alert_type")

    tmpl = sub.add_parser("templates", help="Alert template management")
    tmpl_sub = tmpl.add_subparsers(dest="templates_action")
    tmpl_sub.add_parser("list")
    p = tmpl_sub.add_parser("show")
    p.add_argument("template_id")
    p = tmpl_sub.add_parser("add")
    p.add_argument("template_id")
    p.add_argument("content", help="Template text, a file path, or - for stdin")

    return parser


def main() -> None:
    args = build_parser().parse_args()
    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
