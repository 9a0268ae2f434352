"""
Drift Detection Types
--------------------
This module defines the value types shared by the policy and live-state
paths: rules, policy documents, the live-state snapshot, drift results and
the rows handed to the report formatter and the notifier.
"""

import copy
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from driftwatch.core.exceptions import MalformedStateError


class Protocol(str, Enum):
    """Transport protocols a rule can allow."""

    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"


class DriftType(str, Enum):
    """Outcome recorded for one resource or one drifted rule."""

    COMPLIANT = "COMPLIANT"
    MISSING = "MISSING"
    EXTRA = "EXTRA"
    ERROR = "ERROR"


class ResourceStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    DRIFT = "DRIFT"
    ERROR = "ERROR"


class AuditAction(str, Enum):
    NONE = "NONE"
    REPORTED = "REPORTED"
    FIXED = "FIXED"


class RunStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"


class RemediationType(str, Enum):
    REMOVE = "REMOVE"
    ADD = "ADD"


class Rule(BaseModel):
    """
    A single access rule, desired or observed.
    Identity is ``id``; port and protocol are attributes.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictStr = Field(min_length=1)
    port: StrictInt = Field(ge=1, le=65535)
    protocol: Protocol

    def to_record(self) -> Dict[str, Any]:
        """Convert to the plain mapping stored in the live-state file."""
        return {"id": self.id, "port": self.port, "protocol": self.protocol.value}

    def describe(self) -> str:
        return f"{self.id} ({self.port}/{self.protocol.value})"


class Policy(BaseModel):
    """Desired rule set for one resource."""

    model_config = ConfigDict(frozen=True)

    resource_name: StrictStr = Field(min_length=1)
    rules: Tuple[Rule, ...] = ()

    @field_validator("rules")
    @classmethod
    def rule_ids_unique(cls, rules: Tuple[Rule, ...]) -> Tuple[Rule, ...]:
        seen = set()
        for rule in rules:
            if rule.id in seen:
                raise ValueError(f"duplicate rule id '{rule.id}'")
            seen.add(rule.id)
        return rules


class PolicyLoadFailure(BaseModel):
    """A policy document that could not be turned into a ``Policy``."""

    model_config = ConfigDict(frozen=True)

    resource_name: str
    source: str
    reason: str


class LiveState(BaseModel):
    """
    Snapshot of the observed configuration, keyed by resource name.

    Each entry is the raw mapping read from the live-state file; the observed
    rules live under ``active_rules``. Other keys of an entry are preserved
    when the snapshot is rewritten. The snapshot is never mutated:
    ``with_rules`` returns a new one.
    """

    model_config = ConfigDict(frozen=True)

    resources: Dict[str, Any] = Field(default_factory=dict)

    def resource_names(self) -> List[str]:
        return list(self.resources.keys())

    def rules_for(self, resource_name: str) -> List[Rule]:
        """
        Decode the observed rules of a resource.

        A resource that is absent, or whose entry has no ``active_rules``, has
        an empty observed set. Anything else that is not a list of valid rules
        raises ``MalformedStateError``. Duplicate ids are returned as observed.
        """
        entry = self.resources.get(resource_name)
        if entry is None:
            return []
        if not isinstance(entry, dict):
            raise MalformedStateError(
                f"Live state entry for '{resource_name}' is not an object",
                resource_name=resource_name
            )

        raw_rules = entry.get("active_rules")
        if raw_rules is None:
            return []
        if not isinstance(raw_rules, list):
            raise MalformedStateError(
                f"active_rules of '{resource_name}' is not a list",
                resource_name=resource_name
            )

        rules = []
        for index, item in enumerate(raw_rules):
            try:
                rules.append(Rule.model_validate(item))
            except PydanticValidationError as e:
                raise MalformedStateError(
                    f"Invalid rule at active_rules[{index}] of '{resource_name}': "
                    f"{e.errors()[0].get('msg', 'invalid value')}",
                    resource_name=resource_name
                ) from e
        return rules

    def with_rules(self, resource_name: str, rules: List[Rule]) -> "LiveState":
        """
        Return a snapshot where ``resource_name`` has exactly ``rules``.

        A rule already present in the entry keeps its original record, extra
        keys included. New rules are written with ``Rule.to_record``.
        """
        resources = copy.deepcopy(dict(self.resources))
        entry = resources.get(resource_name)
        entry = dict(entry) if isinstance(entry, dict) else {}

        records = {}
        existing = entry.get("active_rules")
        for item in existing if isinstance(existing, list) else []:
            try:
                records.setdefault(Rule.model_validate(item), item)
            except PydanticValidationError:
                continue

        entry["active_rules"] = [records.get(rule, rule.to_record()) for rule in rules]
        resources[resource_name] = entry
        return LiveState(resources=resources)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.resources))


class DriftResult(BaseModel):
    """Missing and extra rules of one resource from a detection run."""

    resource_name: str = ""
    missing: List[Rule] = Field(default_factory=list)
    extra: List[Rule] = Field(default_factory=list)

    @property
    def drift_count(self) -> int:
        return len(self.missing) + len(self.extra)

    @property
    def is_compliant(self) -> bool:
        """Check if the observed set matches the desired set."""
        return self.drift_count == 0

    @property
    def extra_ids(self) -> List[str]:
        return [rule.id for rule in self.extra]

    @property
    def missing_ids(self) -> List[str]:
        return [rule.id for rule in self.missing]


class RemediationAction(BaseModel):
    """One change applied to a resource's live rules in fix mode."""

    resource_name: str
    action: RemediationType
    rule: Rule


class AuditResultRow(BaseModel):
    """Per-resource row handed to the output formatter."""

    resource_name: str
    status: ResourceStatus
    drift_details: str
    action: AuditAction = AuditAction.NONE


class DriftNotice(BaseModel):
    """Per-rule record handed to the notifier."""

    resource: str
    issue: str
    expected: str
    actual: str


class AuditReport(BaseModel):
    """Outcome of one audit run."""

    timestamp: datetime
    fix_mode: bool = False
    results: List[AuditResultRow] = Field(default_factory=list)
    drifts: List[DriftResult] = Field(default_factory=list)
    remediations: List[RemediationAction] = Field(default_factory=list)
    notices: List[DriftNotice] = Field(default_factory=list)
    resources_audited: int = 0
    total_drift_issues: int = 0
    errors: int = 0
    live_state: Optional[LiveState] = None

    @property
    def status(self) -> RunStatus:
        if self.total_drift_issues == 0:
            return RunStatus.COMPLIANT
        return RunStatus.NON_COMPLIANT
