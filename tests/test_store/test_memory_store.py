"""Tests for MemoryAlertStore — lifecycle transitions, escalation CAS, queries, retention."""

from __future__ import annotations

import asyncio
import datetime

from alertops.core.types import Alert, AlertQuery, AlertStatus, Severity
from alertops.store.memory import MemoryAlertStore

T0 = datetime.datetime(2026, 3, 1, 9, 0, tzinfo=datetime.UTC)


# ── Helpers ─────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime.datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kw: float) -> None:
        self.now += datetime.timedelta(**kw)


def _alert(**kw: object) -> Alert:
    defaults: dict[str, object] = {
        "component": "INGESTION",
        "severity": Severity.CRITICAL,
        "alert_type": "system_down",
        "message": "database unreachable",
    }
    defaults.update(kw)
    return Alert(**defaults)  # type: ignore[arg-type]


# ── Create / Get ────────────────────────────────────────────────


class TestCreate:
    async def test_create_assigns_active_and_clock_time(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        alert_id = await store.create(_alert(status=AlertStatus.RESOLVED))

        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.ACTIVE
        assert stored.created_at == T0
        assert stored.resolved_at is None
        assert len(store) == 1

    async def test_get_unknown_returns_none(self) -> None:
        store = MemoryAlertStore()
        assert await store.get("00000000-0000-0000-0000-000000000000") is None

    async def test_get_returns_copy(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert(metadata={"a": 1}))
        first = await store.get(alert_id)
        assert first is not None
        first.metadata["a"] = 99
        second = await store.get(alert_id)
        assert second is not None
        assert second.metadata == {"a": 1}


# ── Status transitions ─────────────────────────────────────────


class TestUpdateStatus:
    async def test_acknowledge_stamps_actor(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        alert_id = await store.create(_alert())
        clock.advance(minutes=5)

        ok = await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "alice")
        assert ok is True
        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.ACKNOWLEDGED
        assert stored.metadata["acknowledged_by"] == "alice"
        assert stored.metadata["acknowledged_at"] == (T0 + datetime.timedelta(minutes=5)).isoformat()

    async def test_second_acknowledge_fails(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        assert await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "a") is True
        assert await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "b") is False
        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.metadata["acknowledged_by"] == "a"

    async def test_resolve_from_acknowledged(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        alert_id = await store.create(_alert())
        await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "a")
        clock.advance(hours=1)

        assert await store.update_status(alert_id, AlertStatus.RESOLVED, "bob") is True
        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.RESOLVED
        assert stored.resolved_at == T0 + datetime.timedelta(hours=1)
        assert stored.metadata["resolved_by"] == "bob"
        assert stored.metadata["acknowledged_by"] == "a"

    async def test_resolved_is_terminal(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        alert_id = await store.create(_alert())
        clock.advance(minutes=10)
        await store.update_status(alert_id, AlertStatus.RESOLVED, "x")
        clock.advance(hours=2)
        assert await store.update_status(alert_id, AlertStatus.RESOLVED, "y") is False
        assert await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "y") is False

        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.RESOLVED
        assert stored.resolved_at == T0 + datetime.timedelta(minutes=10)
        assert stored.metadata["resolved_by"] == "x"
        assert "acknowledged_by" not in stored.metadata

    async def test_cannot_return_to_active(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        assert await store.update_status(alert_id, AlertStatus.ACTIVE, "x") is False

    async def test_unknown_id(self) -> None:
        store = MemoryAlertStore()
        assert await store.update_status("missing", AlertStatus.RESOLVED, "x") is False

    async def test_concurrent_acknowledge_single_winner(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        results = await asyncio.gather(
            *(store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, f"u{i}") for i in range(5)),
        )
        assert results.count(True) == 1


# ── Metadata / Escalation ──────────────────────────────────────


class TestEscalation:
    async def test_merge_metadata(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert(metadata={"host": "db1"}))
        assert await store.merge_metadata(alert_id, {"note": "x"}) is True
        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.metadata == {"host": "db1", "note": "x"}
        assert await store.merge_metadata("missing", {}) is False

    async def test_record_escalation_raises_level(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        ok = await store.record_escalation(alert_id, 2, {"escalation_level": 2})
        assert ok is True
        stored = await store.get(alert_id)
        assert stored is not None
        assert stored.escalation_level == 2
        assert stored.metadata["escalation_level"] == 2

    async def test_record_escalation_never_lowers(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        await store.record_escalation(alert_id, 2, {})
        assert await store.record_escalation(alert_id, 2, {}) is False
        assert await store.record_escalation(alert_id, 1, {}) is False

    async def test_record_escalation_requires_active(self) -> None:
        store = MemoryAlertStore()
        alert_id = await store.create(_alert())
        await store.update_status(alert_id, AlertStatus.ACKNOWLEDGED, "a")
        assert await store.record_escalation(alert_id, 1, {}) is False


# ── Find ────────────────────────────────────────────────────────


class TestFind:
    async def test_newest_first_and_limit(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        ids = []
        for i in range(3):
            ids.append(await store.create(_alert(message=f"m{i}")))
            clock.advance(minutes=1)

        found = await store.find(AlertQuery(limit=2))
        assert [a.id for a in found] == [ids[2], ids[1]]

    async def test_filters(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        await store.create(_alert())
        await store.create(_alert(component="API", severity=Severity.WARNING))

        found = await store.find(AlertQuery(component="API"))
        assert len(found) == 1
        assert found[0].severity == Severity.WARNING
        assert await store.find(AlertQuery(severity=Severity.INFO)) == []


class TestStats:
    async def test_grouped_and_ordered(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        await store.create(_alert())
        clock.advance(minutes=30)
        await store.create(_alert(message="again"))
        await store.create(_alert(component="API", severity=Severity.INFO))

        rows = await store.stats()
        assert [(r.component, r.severity, r.count) for r in rows] == [
            ("API", Severity.INFO, 1),
            ("INGESTION", Severity.CRITICAL, 2),
        ]
        assert rows[1].first_created_at == T0
        assert rows[1].last_created_at == T0 + datetime.timedelta(minutes=30)
        assert await store.stats("NOPE") == []


# ── Retention ───────────────────────────────────────────────────


class TestRetention:
    async def test_deletes_only_old_resolved(self) -> None:
        clock = FakeClock()
        store = MemoryAlertStore(clock=clock)
        old_resolved = await store.create(_alert(message="old"))
        await store.update_status(old_resolved, AlertStatus.RESOLVED, "x")
        old_active = await store.create(_alert(message="old active"))
        clock.advance(days=200)
        fresh_resolved = await store.create(_alert(message="fresh"))
        await store.update_status(fresh_resolved, AlertStatus.RESOLVED, "x")

        deleted = await store.delete_resolved_older_than(180)
        assert deleted == 1
        assert await store.get(old_resolved) is None
        assert await store.get(old_active) is not None
        assert await store.get(fresh_resolved) is not None

    async def test_zero_days_deletes_every_resolved(self) -> None:
        store = MemoryAlertStore(clock=FakeClock())
        a = await store.create(_alert())
        b = await store.create(_alert(message="other"))
        await store.update_status(a, AlertStatus.RESOLVED, "x")

        assert await store.delete_resolved_older_than(0) == 1
        assert await store.get(b) is not None
