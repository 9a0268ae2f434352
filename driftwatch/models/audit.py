from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field

from driftwatch.core.drift.types import DriftType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timezone-aware UTC form of a timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AuditEvent(SQLModel, table=True):
    __tablename__ = "audit_events"
    # AUTOINCREMENT keeps ids from being reused after the table is cleared
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), index=True)
    )
    resource_name: str = Field(index=True)
    drift_type: DriftType
    rule_id: Optional[str] = Field(default=None)
    port: Optional[int] = Field(default=None)
    protocol: Optional[str] = Field(default=None)
    details: Optional[str] = Field(default=None)  # reason of ERROR events

    def to_dict(self) -> Dict[str, Any]:
        timestamp = as_utc(self.timestamp)
        return {
            "id": self.id,
            "timestamp": timestamp.isoformat() if timestamp else None,
            "resource_name": self.resource_name,
            "drift_type": DriftType(self.drift_type).value,
            "rule_id": self.rule_id,
            "port": self.port,
            "protocol": self.protocol,
            "details": self.details,
        }
