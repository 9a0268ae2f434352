from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from driftwatch.core.drift.types import AuditReport, AuditResultRow, RemediationAction, RunStatus


class AuditRunResponse(BaseModel):
    """Response model for an audit run"""
    timestamp: datetime
    fix_mode: bool
    status: RunStatus
    resources_audited: int
    total_drift_issues: int
    errors: int
    results: List[AuditResultRow] = []
    remediations: List[RemediationAction] = []

    @classmethod
    def from_report(cls, report: AuditReport) -> "AuditRunResponse":
        return cls(
            timestamp=report.timestamp,
            fix_mode=report.fix_mode,
            status=report.status,
            resources_audited=report.resources_audited,
            total_drift_issues=report.total_drift_issues,
            errors=report.errors,
            results=report.results,
            remediations=report.remediations,
        )


class AuditEventRead(BaseModel):
    """Response model for one audit history entry"""
    id: int
    timestamp: Optional[datetime] = None
    resource_name: str
    drift_type: str
    rule_id: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[str] = None
    details: Optional[str] = None


class ClearHistoryResponse(BaseModel):
    deleted: int


class AuditHealthResponse(BaseModel):
    status: str
    total_events: int = 0
    details: Optional[str] = None
