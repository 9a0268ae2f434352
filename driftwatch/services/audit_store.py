# driftwatch/services/audit_store.py
"""
Audit History Store
-------------------
Append-only log of audit events backed by SQLModel. Events are inserted,
read back most recent first, cleared in bulk and exported as CSV.

The store assumes a single writer: one audit run at a time per database.
Ids come from an AUTOINCREMENT sequence and are never reused, not even
after ``clear()``.
"""

import csv
import io
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from driftwatch.core.database import async_session
from driftwatch.core.drift.types import DriftType
from driftwatch.core.exceptions import EmptyExportError, PersistenceError
from driftwatch.core.observability import AUDIT_EVENT_COUNTER
from driftwatch.models.audit import AuditEvent, as_utc, utcnow

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "id",
    "timestamp",
    "resource_name",
    "drift_type",
    "rule_id",
    "port",
    "protocol",
)
EXPORT_FORMATS = ("csv",)


class AuditStore:
    """Persistent, append-only audit history."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or async_session

    def _prepare(self, event: AuditEvent) -> AuditEvent:
        if event.id is not None:
            raise ValueError("Audit event ids are assigned by the store")
        event.timestamp = as_utc(event.timestamp) if event.timestamp else utcnow()
        return event

    @staticmethod
    def _loaded(events: List[AuditEvent]) -> List[AuditEvent]:
        # SQLite drivers may hand back naive values for a timezone-aware column
        for event in events:
            event.timestamp = as_utc(event.timestamp)
        return events

    async def append(self, event: AuditEvent) -> AuditEvent:
        """
        Insert one event, assigning its sequence id and timestamp.

        Args:
            event: Event to store, without an id

        Returns:
            The stored event with ``id`` and ``timestamp`` set

        Raises:
            PersistenceError: If the database is unavailable
        """
        stored = await self.append_many([event])
        return stored[0]

    async def append_many(self, events: Iterable[AuditEvent]) -> List[AuditEvent]:
        """Insert a batch of events in a single transaction."""
        batch = [self._prepare(event) for event in events]
        if not batch:
            return []

        try:
            async with self._session_factory() as session:
                session.add_all(batch)
                await session.commit()
                for event in batch:
                    await session.refresh(event)
        except SQLAlchemyError as e:
            logger.error(f"Error appending audit events: {str(e)}")
            raise PersistenceError(f"Audit store unavailable: {str(e)}") from e

        AUDIT_EVENT_COUNTER.inc(len(batch))
        logger.debug(f"Appended {len(batch)} audit events")
        return self._loaded(batch)

    async def query(self, limit: Optional[int] = None) -> List[AuditEvent]:
        """
        Get events, most recent first.

        Args:
            limit: Keep only the N most recent events

        Returns:
            Events ordered by timestamp descending, ties by id descending
        """
        if limit is not None and limit < 0:
            raise ValueError("limit must be zero or positive")

        statement = select(AuditEvent).order_by(
            AuditEvent.timestamp.desc(),
            AuditEvent.id.desc()
        )
        if limit is not None:
            statement = statement.limit(limit)

        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                events = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error reading audit history: {str(e)}")
            raise PersistenceError(f"Audit store unavailable: {str(e)}") from e

        return self._loaded(events)

    async def count(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(AuditEvent)
                )
                return result.scalar_one() or 0
        except SQLAlchemyError as e:
            logger.error(f"Error counting audit events: {str(e)}")
            raise PersistenceError(f"Audit store unavailable: {str(e)}") from e

    async def clear(self) -> int:
        """
        Delete every event in one transaction.
        The id sequence is not reset.

        Returns:
            Number of deleted events
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(AuditEvent))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error clearing audit history: {str(e)}")
            raise PersistenceError(f"Audit store unavailable: {str(e)}") from e

        deleted = result.rowcount or 0
        logger.info(f"Cleared {deleted} audit events")
        return deleted

    async def export(self, fmt: str = "csv") -> bytes:
        """
        Serialize the whole history, one row per event.

        Args:
            fmt: Output format, only ``csv`` is supported

        Returns:
            UTF-8 encoded CSV with a header row

        Raises:
            EmptyExportError: If there are no events
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")

        events = await self.query()
        if not events:
            raise EmptyExportError("No audit events found to export")

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_COLUMNS)
        for event in events:
            writer.writerow([
                event.id,
                event.timestamp.isoformat() if event.timestamp else "",
                event.resource_name,
                DriftType(event.drift_type).value,
                event.rule_id or "",
                event.port if event.port is not None else "",
                event.protocol or "",
            ])

        logger.info(f"Exported {len(events)} audit events")
        return output.getvalue().encode("utf-8")

    async def export_to_file(self, directory: Union[str, Path] = ".") -> Path:
        """Write the CSV export to ``audit_export_<epoch ms>.csv`` in ``directory``."""
        content = await self.export()
        path = Path(directory) / f"audit_export_{int(time.time() * 1000)}.csv"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error(f"Error writing audit export: {str(e)}")
            raise PersistenceError(f"Could not write export file {path}: {str(e)}") from e

        logger.info(f"Audit history exported to {path}")
        return path
