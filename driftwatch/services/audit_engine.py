# driftwatch/services/audit_engine.py
"""
Audit Engine
------------
Drives the detector and the reconciler over every policy of a run:

    START -> LOAD_INPUTS -> for each resource: DETECT -> (RECONCILE if fix) -> LOG
          -> (PERSIST_LIVE_STATE if fix) -> REPORT -> DONE

Per-resource input errors are logged as ERROR events and the run goes on.
Audit store failures abort the run before anything is written to the live
state. In fix mode the corrected snapshot is persisted once, after every
resource has been processed, so a crash leaves either no fixes or all of
them.
"""

import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional, Union

from driftwatch.core.drift.detector import build_notices, describe_drift, detect
from driftwatch.core.drift.reconciler import plan_remediation
from driftwatch.core.drift.types import (
    AuditAction,
    AuditReport,
    AuditResultRow,
    DriftResult,
    DriftType,
    LiveState,
    Policy,
    PolicyLoadFailure,
    ResourceStatus,
)
from driftwatch.core.exceptions import ValidationError
from driftwatch.core.observability import (
    AUDIT_RUN_COUNTER,
    AUDIT_RUN_DURATION,
    DRIFT_ISSUE_COUNTER,
    timed_execution,
)
from driftwatch.models.audit import AuditEvent, utcnow
from driftwatch.services.audit_store import AuditStore
from driftwatch.services.notification_service import SlackNotifier

logger = logging.getLogger(__name__)

PolicyDocument = Union[Policy, PolicyLoadFailure]
PersistCallback = Callable[[LiveState], Any]


def drift_events(result: DriftResult) -> List[AuditEvent]:
    """
    Audit events for one resource: a COMPLIANT event when clean, otherwise
    one EXTRA event per extra rule followed by one MISSING event per missing rule.
    """
    if result.is_compliant:
        return [AuditEvent(resource_name=result.resource_name, drift_type=DriftType.COMPLIANT)]

    events = []
    for drift_type, rules in ((DriftType.EXTRA, result.extra), (DriftType.MISSING, result.missing)):
        for rule in rules:
            events.append(AuditEvent(
                resource_name=result.resource_name,
                drift_type=drift_type,
                rule_id=rule.id,
                port=rule.port,
                protocol=rule.protocol.value
            ))
    return events


class AuditEngine:
    """Runs one audit over a set of policies and a live-state snapshot."""

    def __init__(
        self,
        store: AuditStore,
        strict: bool = False,
        notifier: Optional[SlackNotifier] = None
    ):
        self.store = store
        self.strict = strict
        self.notifier = notifier

    async def run(
        self,
        policies: Iterable[PolicyDocument],
        live_state: LiveState,
        fix: bool = False,
        persist: Optional[PersistCallback] = None
    ) -> AuditReport:
        """
        Audit every policy against the live state.

        Args:
            policies: Loaded policies, malformed ones as PolicyLoadFailure
            live_state: Snapshot of the observed configuration
            fix: Reconcile drifted resources to match their policy
            persist: Called once with the corrected snapshot in fix mode

        Returns:
            AuditReport with per-resource rows, totals and the resulting snapshot

        Raises:
            PersistenceError: If the audit store or the live state cannot be written
        """
        mode = "fix" if fix else "dry_run"
        report = AuditReport(timestamp=utcnow(), fix_mode=fix)
        snapshot = live_state

        logger.info(f"Starting audit run ({mode}, strict={self.strict})")

        with timed_execution(AUDIT_RUN_DURATION):
            for document in policies:
                report.resources_audited += 1

                if isinstance(document, PolicyLoadFailure):
                    await self._record_error(report, document.resource_name, document.reason)
                    continue

                resource_name = document.resource_name
                try:
                    observed = snapshot.rules_for(resource_name)
                    result = detect(
                        document.rules,
                        observed,
                        resource_name=resource_name,
                        strict=self.strict
                    )
                    action = AuditAction.NONE
                    if not result.is_compliant:
                        action = AuditAction.REPORTED
                        if fix:
                            corrected, actions = plan_remediation(observed, result)
                            snapshot = snapshot.with_rules(resource_name, corrected)
                            report.remediations.extend(actions)
                            action = AuditAction.FIXED
                except ValidationError as e:
                    await self._record_error(report, resource_name, e.message)
                    continue

                await self.store.append_many(drift_events(result))

                report.drifts.append(result)
                report.total_drift_issues += result.drift_count
                report.results.append(AuditResultRow(
                    resource_name=resource_name,
                    status=ResourceStatus.COMPLIANT if result.is_compliant else ResourceStatus.DRIFT,
                    drift_details=describe_drift(result),
                    action=action
                ))
                for drift_type, rules in ((DriftType.MISSING, result.missing), (DriftType.EXTRA, result.extra)):
                    if rules:
                        DRIFT_ISSUE_COUNTER.labels(drift_type=drift_type.value).inc(len(rules))

            if fix and persist is not None:
                outcome = persist(snapshot)
                if inspect.isawaitable(outcome):
                    await outcome

        report.live_state = snapshot
        AUDIT_RUN_COUNTER.labels(mode=mode, status=report.status.value).inc()
        logger.info(
            f"Audit run completed: {report.resources_audited} resources, "
            f"{report.total_drift_issues} drift issues, {report.errors} errors"
        )

        if report.total_drift_issues:
            for result in report.drifts:
                report.notices.extend(build_notices(result))
            await self._dispatch_notices(report)

        return report

    async def _record_error(self, report: AuditReport, resource_name: str, reason: str) -> None:
        logger.warning(f"Error auditing {resource_name}: {reason}")
        await self.store.append(AuditEvent(
            resource_name=resource_name,
            drift_type=DriftType.ERROR,
            details=reason
        ))
        report.errors += 1
        report.results.append(AuditResultRow(
            resource_name=resource_name,
            status=ResourceStatus.ERROR,
            drift_details=reason,
            action=AuditAction.NONE
        ))

    async def _dispatch_notices(self, report: AuditReport) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(report.notices)
        except Exception as e:
            logger.warning(f"Drift notifier failed: {str(e)}")
