"""Router — resolves recipients from a prioritised wildcard rule table."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

import structlog

from alertops.core.config import RoutingConfig
from alertops.core.exceptions import AlertValidationError
from alertops.core.types import WILDCARD, RoutingRule, Severity

logger = structlog.get_logger(__name__)

# (rule, component, severity, alert_type) -> bool
_Matcher = Callable[[RoutingRule, str, str, str], bool]

# Lookup passes in precedence order; the first pass with a hit wins and,
# within a pass, the earliest rule in the table wins.
_PASSES: tuple[tuple[str, _Matcher], ...] = (
    (
        "exact",
        lambda r, c, s, t: r.key == (c, s, t),
    ),
    (
        "severity_wildcard",
        lambda r, c, s, t: r.key == (c, WILDCARD, t),
    ),
    (
        "type_wildcard",
        lambda r, c, s, t: r.key == (c, s, WILDCARD),
    ),
    (
        "component_severity",
        lambda r, c, s, t: r.component == c and r.severity == s,
    ),
    (
        "full_wildcard",
        lambda r, c, s, t: r.key == (WILDCARD, WILDCARD, WILDCARD),
    ),
)


def _split_recipients(recipients: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(recipients, str):
        recipients = recipients.split(",")
    return tuple(r.strip() for r in recipients if r.strip())


def _check_field(name: str, value: str) -> str:
    # Match fields are stored ":"-separated, one rule per line.
    text = value.strip()
    if not text or ":" in text or "\n" in text or text.startswith("#"):
        raise AlertValidationError(f"Invalid routing rule {name}: {value!r}")
    return text


class Router:
    """Resolves who should hear about an alert.

    Precedence (first match wins):

    1. exact ``(component, severity, type)``
    2. ``(component, *, type)``
    3. ``(component, severity, *)``
    4. ``(component, severity)`` with any type
    5. ``(*, *, *)``
    6. per-severity defaults from RoutingConfig, then the admin address.

    Missing rules are never an error; some recipient is always produced
    except for info alerts when no info recipients are configured.
    """

    def __init__(
        self,
        config: RoutingConfig | None = None,
        rules: Sequence[RoutingRule] | None = None,
    ) -> None:
        self._config = config or RoutingConfig()
        self._rules: list[RoutingRule] = list(rules or [])

    @property
    def rules(self) -> list[RoutingRule]:
        """Copy of the rule table in precedence order."""
        return list(self._rules)

    # ── Resolution ──────────────────────────────────────────────

    def resolve(self, component: str, severity: str, alert_type: str) -> list[str]:
        severity = str(severity)
        for name, matcher in _PASSES:
            for rule in self._rules:
                if matcher(rule, component, severity, alert_type):
                    logger.debug(
                        "route_matched",
                        rule=rule.format_line(),
                        match=name,
                        component=component,
                        severity=severity,
                        alert_type=alert_type,
                    )
                    return list(rule.recipients)
        return self.default_recipients(severity)

    def default_recipients(self, severity: str) -> list[str]:
        """Severity-based fallback used when no rule matches."""
        cfg = self._config
        if severity == Severity.CRITICAL:
            return list(cfg.critical_recipients) or self.fallback_recipients()
        if severity == Severity.WARNING:
            return list(cfg.warning_recipients) or self.fallback_recipients()
        if severity == Severity.INFO:
            return list(cfg.info_recipients)
        return self.fallback_recipients()

    def fallback_recipients(self) -> list[str]:
        """The admin address, as a one-element list (empty if unset)."""
        admin = self._config.admin_email.strip()
        return [admin] if admin else []

    # ── Rule management ─────────────────────────────────────────

    def add(
        self,
        component: str,
        severity: str,
        alert_type: str,
        recipients: str | Iterable[str],
    ) -> RoutingRule:
        """Append a rule; duplicates are allowed and earlier rules win.

        Raises:
            AlertValidationError: If a match field is empty or cannot be
                written to the rules file, or no recipient is given.
        """
        component = _check_field("component", component)
        severity = _check_field("severity", str(severity))
        alert_type = _check_field("alert type", alert_type)
        route = _split_recipients(recipients)
        if not route:
            raise AlertValidationError("A routing rule needs at least one recipient")
        if any("\n" in r for r in route):
            raise AlertValidationError("Recipients must not contain line breaks")
        rule = RoutingRule(
            component=component,
            severity=severity,
            alert_type=alert_type,
            recipients=route,
        )
        self._rules.append(rule)
        logger.info("routing_rule_added", rule=rule.format_line())
        return rule

    def remove(self, position: int) -> RoutingRule | None:
        """Remove the rule at 1-based *position*; None if out of range."""
        if not 1 <= position <= len(self._rules):
            return None
        rule = self._rules.pop(position - 1)
        logger.info("routing_rule_removed", rule=rule.format_line(), position=position)
        return rule

    def remove_matching(self, component: str, severity: str, alert_type: str) -> int:
        """Remove every rule whose match tuple equals the given one."""
        key = (component, str(severity), alert_type)
        kept = [r for r in self._rules if r.key != key]
        removed = len(self._rules) - len(kept)
        self._rules = kept
        if removed:
            logger.info("routing_rules_removed", key=":".join(key), count=removed)
        return removed

    def list_rules(self, component: str | None = None) -> list[tuple[int, RoutingRule]]:
        """Rules with their 1-based positions, optionally for one component."""
        return [
            (pos, rule)
            for pos, rule in enumerate(self._rules, start=1)
            if component is None or rule.component == component
        ]

    def replace_rules(self, rules: Sequence[RoutingRule]) -> None:
        self._rules = list(rules)
