# driftwatch/services/report_formatter.py
"""Terminal rendering of audit reports and of the audit history."""

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from driftwatch.core.drift.types import AuditReport, ResourceStatus
from driftwatch.models.audit import AuditEvent

STATUS_LABELS = {
    ResourceStatus.COMPLIANT: ("✅ OK", "green"),
    ResourceStatus.DRIFT: ("⚠️ DRIFT", "yellow"),
    ResourceStatus.ERROR: ("❌ ERROR", "red"),
}


def render_report(report: AuditReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    mode = "REMEDIATION" if report.fix_mode else "DRY RUN"

    console.print(
        f"\nDRIFTWATCH AUDIT REPORT - {report.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        highlight=False
    )
    console.print(f"MODE: {mode}\n", highlight=False)

    table = Table(box=box.MINIMAL_DOUBLE_HEAD, show_header=True, header_style="bold")
    table.add_column("Resource", justify="left")
    table.add_column("Status")
    table.add_column("Drift Details", justify="left")
    table.add_column("Action")
    for row in report.results:
        label, color = STATUS_LABELS[row.status]
        table.add_row(
            escape(row.resource_name), label, escape(row.drift_details), row.action.value, style=color
        )
    console.print(table)

    console.print("-" * 42, highlight=False)
    console.print("SUMMARY:", highlight=False)
    console.print(f"Total Resources Audited: {report.resources_audited}", highlight=False)
    console.print(f"Total Drift Issues Found: {report.total_drift_issues}", highlight=False)
    if report.errors:
        console.print(f"Resources With Errors: {report.errors}", highlight=False)
    console.print(f"Status: {report.status.value}", highlight=False)
    console.print("-" * 42 + "\n", highlight=False)


def render_history(events: List[AuditEvent], console: Optional[Console] = None) -> None:
    console = console or Console()
    if not events:
        console.print("No audit history found.", highlight=False)
        return

    table = Table(
        title=f"HISTORICAL AUDIT LOGS (Last {len(events)})",
        box=box.MINIMAL,
        show_header=True,
        header_style="bold"
    )
    for column in ("Id", "Time", "Resource", "Type", "Rule", "Port", "Protocol"):
        table.add_column(column)
    for event in events:
        data = event.to_dict()
        table.add_row(
            str(data["id"]),
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S") if event.timestamp else "",
            escape(data["resource_name"]),
            data["drift_type"],
            escape(data["rule_id"] or (data["details"] or "")),
            "" if data["port"] is None else str(data["port"]),
            data["protocol"] or "",
        )
    console.print(table)
