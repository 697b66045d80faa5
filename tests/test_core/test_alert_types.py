"""Tests for alert domain types — parsing, validation, query matching."""

from __future__ import annotations

import datetime

import pytest

from alertops.core.exceptions import AlertValidationError
from alertops.core.types import (
    Alert,
    AlertQuery,
    AlertStatus,
    RoutingRule,
    Severity,
    as_utc,
    parse_alert_id,
    parse_severity,
    parse_status,
)

T0 = datetime.datetime(2026, 1, 1, 12, 0, tzinfo=datetime.UTC)


def _alert(**kw: object) -> Alert:
    defaults: dict[str, object] = {
        "component": "INGESTION",
        "severity": Severity.CRITICAL,
        "alert_type": "system_down",
        "message": "db down",
        "created_at": T0,
    }
    defaults.update(kw)
    return Alert(**defaults)  # type: ignore[arg-type]


# ── Parsing ─────────────────────────────────────────────────────


class TestParseSeverity:
    def test_known_values(self) -> None:
        assert parse_severity("critical") == Severity.CRITICAL
        assert parse_severity("warning") == Severity.WARNING
        assert parse_severity("info") == Severity.INFO

    def test_case_and_whitespace_normalised(self) -> None:
        assert parse_severity(" WARNING ") == Severity.WARNING

    def test_error_maps_to_critical(self) -> None:
        assert parse_severity("ERROR") == Severity.CRITICAL

    def test_enum_passthrough(self) -> None:
        assert parse_severity(Severity.INFO) is Severity.INFO

    def test_invalid_rejected(self) -> None:
        with pytest.raises(AlertValidationError):
            parse_severity("urgent")


class TestParseStatus:
    def test_known(self) -> None:
        assert parse_status("acknowledged") == AlertStatus.ACKNOWLEDGED

    def test_invalid(self) -> None:
        with pytest.raises(AlertValidationError):
            parse_status("closed")


class TestParseAlertId:
    def test_canonicalises(self) -> None:
        raw = "6F9619FF-8B86-D011-B42D-00C04FC964FF"
        assert parse_alert_id(raw) == raw.lower()

    def test_malformed(self) -> None:
        with pytest.raises(AlertValidationError):
            parse_alert_id("not-a-uuid")


# ── Alert ───────────────────────────────────────────────────────


class TestAlert:
    def test_defaults(self) -> None:
        a = _alert()
        assert a.status == AlertStatus.ACTIVE
        assert a.escalation_level == 0
        assert a.resolved_at is None
        assert len(a.id) == 36

    def test_escalation_level_bounded(self) -> None:
        with pytest.raises(ValueError):
            _alert(escalation_level=4)

    def test_age_minutes_floors(self) -> None:
        a = _alert()
        assert a.age_minutes(T0 + datetime.timedelta(minutes=15, seconds=59)) == 15

    def test_age_never_negative(self) -> None:
        a = _alert()
        assert a.age_minutes(T0 - datetime.timedelta(minutes=5)) == 0

    def test_naive_created_at_treated_as_utc(self) -> None:
        a = _alert(created_at=T0.replace(tzinfo=None))
        assert a.age_minutes(T0 + datetime.timedelta(minutes=3)) == 3

    def test_as_utc_converts_offsets(self) -> None:
        plus_two = datetime.timezone(datetime.timedelta(hours=2))
        local = datetime.datetime(2026, 1, 1, 14, 0, tzinfo=plus_two)
        assert as_utc(local) == T0


class TestAlertQuery:
    def test_empty_query_matches_everything(self) -> None:
        assert AlertQuery().matches(_alert())

    def test_component_and_status(self) -> None:
        q = AlertQuery(component="INGESTION", status=AlertStatus.ACTIVE)
        assert q.matches(_alert())
        assert not q.matches(_alert(component="API"))
        assert not q.matches(_alert(status=AlertStatus.RESOLVED))

    def test_created_after_is_exclusive(self) -> None:
        q = AlertQuery(created_after=T0)
        assert not q.matches(_alert())
        assert q.matches(_alert(created_at=T0 + datetime.timedelta(seconds=1)))

    def test_created_before(self) -> None:
        q = AlertQuery(created_before=T0)
        assert q.matches(_alert(created_at=T0 - datetime.timedelta(seconds=1)))
        assert not q.matches(_alert())


class TestRoutingRule:
    def test_format_line(self) -> None:
        rule = RoutingRule(
            component="INGESTION",
            severity="critical",
            alert_type="*",
            recipients=("a@example.com", "b@example.com"),
        )
        assert rule.format_line() == "INGESTION:critical:*:a@example.com,b@example.com"
        assert rule.key == ("INGESTION", "critical", "*")

    def test_frozen(self) -> None:
        rule = RoutingRule(component="A", severity="*", alert_type="*", recipients=("x",))
        with pytest.raises(ValueError):
            rule.component = "B"  # type: ignore[misc]
