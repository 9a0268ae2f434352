"""
Drift Detection System
---------------------
This module provides the rule model, the drift detector and the reconciler
used to compare declared policies with observed live state.

Drift refers to any rule present in exactly one of the policy and the live
state of a resource.
"""

from driftwatch.core.drift.detector import build_notices, describe_drift, detect
from driftwatch.core.drift.matcher import rule_key
from driftwatch.core.drift.reconciler import plan_remediation, reconcile
from driftwatch.core.drift.types import (
    AuditAction,
    AuditReport,
    AuditResultRow,
    DriftNotice,
    DriftResult,
    DriftType,
    LiveState,
    Policy,
    PolicyLoadFailure,
    Protocol,
    RemediationAction,
    RemediationType,
    ResourceStatus,
    Rule,
    RunStatus,
)

__all__ = [
    'detect',
    'describe_drift',
    'build_notices',
    'rule_key',
    'plan_remediation',
    'reconcile',
    'AuditAction',
    'AuditReport',
    'AuditResultRow',
    'DriftNotice',
    'DriftResult',
    'DriftType',
    'LiveState',
    'Policy',
    'PolicyLoadFailure',
    'Protocol',
    'RemediationAction',
    'RemediationType',
    'ResourceStatus',
    'Rule',
    'RunStatus',
]
