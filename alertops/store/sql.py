"""Relational AlertStore on SQLAlchemy 2.0 async (asyncpg / aiosqlite)."""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from alertops.core.exceptions import TransientStoreError
from alertops.core.types import (
    ALLOWED_TRANSITIONS,
    Alert,
    AlertQuery,
    AlertStatus,
    Clock,
    Severity,
    StatsRow,
    as_utc,
    parse_severity,
    utc_now,
)
from alertops.store.base import AlertStore

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (
    OperationalError,
    DBAPIError,
    PoolTimeoutError,
    TimeoutError,
    ConnectionError,
    OSError,
)


class Base(DeclarativeBase):
    pass


class AlertRow(Base):
    """``alerts`` table; severity/status constrained like the legacy schema."""

    __tablename__ = "alerts"
    __table_args__ = (
        CheckConstraint(
            "severity IN ('critical', 'warning', 'info')",
            name="ck_alerts_severity",
        ),
        CheckConstraint(
            "status IN ('active', 'acknowledged', 'resolved')",
            name="ck_alerts_status",
        ),
        CheckConstraint(
            "escalation_level BETWEEN 0 AND 3",
            name="ck_alerts_escalation_level",
        ),
        Index("ix_alerts_dedup", "component", "alert_type", "status", "created_at"),
        Index("ix_alerts_status_created", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    component: Mapped[str] = mapped_column(String(100))
    severity: Mapped[str] = mapped_column(String(16))
    alert_type: Mapped[str] = mapped_column(String(100))
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), default=AlertStatus.ACTIVE.value)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    escalation_level: Mapped[int] = mapped_column(Integer, default=0)
    # "metadata" is reserved on declarative classes.
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    def to_alert(self) -> Alert:
        return Alert(
            id=self.id,
            component=self.component,
            severity=Severity(self.severity),
            alert_type=self.alert_type,
            message=self.message,
            status=AlertStatus(self.status),
            created_at=as_utc(self.created_at),
            resolved_at=as_utc(self.resolved_at) if self.resolved_at else None,
            escalation_level=self.escalation_level,
            metadata=dict(self.details or {}),
        )


class SqlAlertStore(AlertStore):
    """Alert store backed by a relational database.

    Example:
        >>> store = SqlAlertStore("postgresql+asyncpg://user@localhost/alerts")
        >>> await store.connect()
        >>> alert_id = await store.create(alert)
        >>> await store.close()

    Every operation runs in its own transaction under an
    ``asyncio.timeout``; driver, pool and timeout failures are re-raised
    as TransientStoreError.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        operation_timeout_secs: float = 10.0,
        clock: Clock = utc_now,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._url = url
        self._timeout = operation_timeout_secs
        self._clock = clock
        self._engine = engine or create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def connect(self) -> None:
        """Create the schema if missing."""
        try:
            async with asyncio.timeout(self._timeout):
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
        except _TRANSIENT_ERRORS as exc:
            logger.error("alert_store_connect_failed", error=str(exc))
            raise TransientStoreError(f"Cannot connect to alert store: {exc}") from exc
        logger.info("alert_store_connected", backend=self._engine.dialect.name)

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as session, session.begin():
                    yield session
        except IntegrityError:
            raise
        except _TRANSIENT_ERRORS as exc:
            logger.warning("alert_store_operation_failed", error=str(exc))
            raise TransientStoreError(f"Alert store unavailable: {exc}") from exc

    # ── AlertStore ──────────────────────────────────────────────

    async def create(self, alert: Alert) -> str:
        severity = parse_severity(alert.severity)
        row = AlertRow(
            id=alert.id,
            component=alert.component,
            severity=severity.value,
            alert_type=alert.alert_type,
            message=alert.message,
            status=AlertStatus.ACTIVE.value,
            created_at=self._clock(),
            resolved_at=None,
            escalation_level=alert.escalation_level,
            details=dict(alert.metadata),
        )
        async with self._session() as session:
            session.add(row)
        return row.id

    async def get(self, alert_id: str) -> Alert | None:
        async with self._session() as session:
            row = await session.get(AlertRow, alert_id)
            return row.to_alert() if row is not None else None

    async def update_status(
        self,
        alert_id: str,
        new_status: AlertStatus,
        actor: str,
    ) -> bool:
        allowed = [s.value for s in ALLOWED_TRANSITIONS.get(new_status, frozenset())]
        if not allowed:
            return False
        now = self._clock()
        values: dict[str, Any] = {"status": new_status.value}
        if new_status == AlertStatus.RESOLVED:
            values["resolved_at"] = now
            stamp = {"resolved_by": actor, "resolved_at": now.isoformat()}
        else:
            stamp = {"acknowledged_by": actor, "acknowledged_at": now.isoformat()}

        async with self._session() as session:
            # Compare-and-set on status: a concurrent caller sees rowcount 0.
            result = await session.execute(
                update(AlertRow)
                .where(AlertRow.id == alert_id, AlertRow.status.in_(allowed))
                .values(**values)
                .execution_options(synchronize_session=False),
            )
            if result.rowcount != 1:
                return False
            await self._merge_details(session, alert_id, stamp)
        return True

    async def merge_metadata(self, alert_id: str, partial: dict[str, Any]) -> bool:
        async with self._session() as session:
            return await self._merge_details(session, alert_id, partial)

    async def record_escalation(
        self,
        alert_id: str,
        level: int,
        partial: dict[str, Any],
    ) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(AlertRow)
                .where(
                    AlertRow.id == alert_id,
                    AlertRow.status == AlertStatus.ACTIVE.value,
                    AlertRow.escalation_level < level,
                )
                .values(escalation_level=level)
                .execution_options(synchronize_session=False),
            )
            if result.rowcount != 1:
                return False
            await self._merge_details(session, alert_id, partial)
        return True

    async def find(self, query: AlertQuery) -> list[Alert]:
        stmt = select(AlertRow)
        if query.component is not None:
            stmt = stmt.where(AlertRow.component == query.component)
        if query.status is not None:
            stmt = stmt.where(AlertRow.status == query.status.value)
        if query.severity is not None:
            stmt = stmt.where(AlertRow.severity == query.severity.value)
        if query.alert_type is not None:
            stmt = stmt.where(AlertRow.alert_type == query.alert_type)
        if query.message is not None:
            stmt = stmt.where(AlertRow.message == query.message)
        if query.created_after is not None:
            stmt = stmt.where(AlertRow.created_at > as_utc(query.created_after))
        if query.created_before is not None:
            stmt = stmt.where(AlertRow.created_at < as_utc(query.created_before))
        stmt = stmt.order_by(AlertRow.created_at.desc())
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [row.to_alert() for row in rows]

    async def stats(self, component: str | None = None) -> list[StatsRow]:
        keys = (AlertRow.component, AlertRow.severity, AlertRow.status)
        stmt = select(
            *keys,
            func.count(),
            func.min(AlertRow.created_at),
            func.max(AlertRow.created_at),
        )
        if component is not None:
            stmt = stmt.where(AlertRow.component == component)
        stmt = stmt.group_by(*keys).order_by(*keys)

        async with self._session() as session:
            result = await session.execute(stmt)
            return [
                StatsRow(
                    component=comp,
                    severity=Severity(severity),
                    status=AlertStatus(status),
                    count=count,
                    first_created_at=as_utc(first),
                    last_created_at=as_utc(last),
                )
                for comp, severity, status, count, first, last in result.all()
            ]

    async def delete_resolved_older_than(self, retention_days: int) -> int:
        cutoff = self._clock() - datetime.timedelta(days=retention_days)
        async with self._session() as session:
            result = await session.execute(
                delete(AlertRow)
                .where(
                    AlertRow.status == AlertStatus.RESOLVED.value,
                    AlertRow.created_at <= cutoff,
                )
                .execution_options(synchronize_session=False),
            )
            deleted = result.rowcount or 0
        logger.info("alert_store_cleanup", deleted=deleted, retention_days=retention_days)
        return deleted

    # ── Internal ────────────────────────────────────────────────

    async def _merge_details(
        self,
        session: AsyncSession,
        alert_id: str,
        partial: dict[str, Any],
    ) -> bool:
        row = await session.get(AlertRow, alert_id, with_for_update=True)
        if row is None:
            return False
        # Reassign so the JSON column is flagged dirty.
        row.details = {**(row.details or {}), **partial}
        return True
