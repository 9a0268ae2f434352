"""
Drift Reconciliation
--------------------
Fix mode: rewrite an observed rule set so that it matches its policy.
Extra rules are removed and missing rules are appended, which makes the
operation idempotent: detecting again on the output yields no drift.
"""

import logging
from typing import Any, List, Tuple

from driftwatch.core.drift.types import DriftResult, RemediationAction, RemediationType, Rule
from driftwatch.core.exceptions import MalformedStateError

logger = logging.getLogger(__name__)


def _ensure_rule_sequence(observed: Any, resource_name: str) -> None:
    if not isinstance(observed, (list, tuple)):
        raise MalformedStateError(
            f"Observed rules of '{resource_name}' must be a sequence, "
            f"got {type(observed).__name__}",
            resource_name=resource_name
        )
    for index, item in enumerate(observed):
        if not isinstance(item, Rule):
            raise MalformedStateError(
                f"Observed rule {index} of '{resource_name}' is not a Rule",
                resource_name=resource_name
            )


def plan_remediation(
    observed: List[Rule],
    result: DriftResult
) -> Tuple[List[Rule], List[RemediationAction]]:
    """
    Compute the corrected rule set and the actions that produce it.

    Args:
        observed: Rules currently in the live state
        result: Drift detected for the resource

    Returns:
        Tuple of (corrected rules, ordered remediation actions)

    Raises:
        MalformedStateError: If ``observed`` is not a sequence of rules
    """
    resource_name = result.resource_name
    _ensure_rule_sequence(observed, resource_name)

    extra_ids = {rule.id for rule in result.extra}
    actions = []
    corrected = []

    for rule in observed:
        if rule.id in extra_ids:
            actions.append(RemediationAction(
                resource_name=resource_name,
                action=RemediationType.REMOVE,
                rule=rule
            ))
        else:
            corrected.append(rule)

    for rule in result.missing:
        corrected.append(rule)
        actions.append(RemediationAction(
            resource_name=resource_name,
            action=RemediationType.ADD,
            rule=rule
        ))

    logger.info(
        f"Planned {len(actions)} remediation actions for {resource_name or 'resource'}"
    )
    return corrected, actions


def reconcile(observed: List[Rule], result: DriftResult) -> List[Rule]:
    """Return ``observed`` without the extra rules, followed by the missing ones."""
    corrected, _ = plan_remediation(observed, result)
    return corrected
