"""Persistence adapter for routing rules in the line-oriented rules file.

Format, one rule per line::

    component:severity:type:recipient[,recipient...]

Blank lines and ``#`` comments are ignored.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from alertops.core.types import RoutingRule

logger = structlog.get_logger(__name__)


def parse_rule_line(line: str) -> RoutingRule | None:
    """Parse one rules-file line; None for blanks, comments and bad lines."""
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    parts = text.split(":", 3)
    if len(parts) != 4 or not all(p.strip() for p in parts[:3]):
        logger.warning("routing_rule_malformed", line=text)
        return None
    component, severity, alert_type, route = (p.strip() for p in parts)
    recipients = tuple(r.strip() for r in route.split(",") if r.strip())
    if not recipients:
        logger.warning("routing_rule_without_recipients", line=text)
        return None
    return RoutingRule(
        component=component,
        severity=severity,
        alert_type=alert_type,
        recipients=recipients,
    )


class RuleFile:
    """Loads and saves the routing rule table."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[RoutingRule]:
        """Read all rules in file order; a missing file is an empty table."""
        if not self._path.exists():
            return []
        rules: list[RoutingRule] = []
        with open(self._path) as f:
            for line in f:
                rule = parse_rule_line(line)
                if rule is not None:
                    rules.append(rule)
        return rules

    def save(self, rules: list[RoutingRule]) -> None:
        """Rewrite the file with *rules*, creating parent directories."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w") as f:
            for rule in rules:
                f.write(rule.format_line() + "\n")
        tmp.replace(self._path)
