"""
Drift Detection Core Logic
-------------------------
This module compares the desired rule set of a resource with its observed
rule set and reports the rules missing from, or extra in, the live state.
"""

import logging
from typing import Iterable, List, Sequence

from driftwatch.core.drift.matcher import rule_key
from driftwatch.core.drift.types import DriftNotice, DriftResult, Rule

logger = logging.getLogger(__name__)

COMPLIANT_DETAILS = "Matches Policy"


def dedupe_rules(rules: Iterable[Rule]) -> List[Rule]:
    """
    Drop rules whose id was already seen, keeping the first occurrence.

    Args:
        rules: Rules in input order

    Returns:
        New list with unique ids, input order preserved
    """
    seen = set()
    unique = []
    for rule in rules:
        if rule.id in seen:
            logger.debug(f"Ignoring duplicate rule id '{rule.id}'")
            continue
        seen.add(rule.id)
        unique.append(rule)
    return unique


def detect(
    desired: Sequence[Rule],
    observed: Sequence[Rule],
    resource_name: str = "",
    strict: bool = False
) -> DriftResult:
    """
    Compute the drift between a desired and an observed rule set.

    Rules are matched by id. With ``strict`` they are matched by id, port and
    protocol, so an attribute mismatch on a shared id is reported both as a
    missing and as an extra rule. Output order follows input order. Neither
    input is mutated.

    Args:
        desired: Rules declared in the policy
        observed: Rules found in the live state
        resource_name: Resource the rules belong to
        strict: Match on all rule attributes

    Returns:
        DriftResult with the missing and extra rules
    """
    desired_rules = dedupe_rules(desired)
    observed_rules = dedupe_rules(observed)

    desired_keys = {rule_key(rule, strict) for rule in desired_rules}
    observed_keys = {rule_key(rule, strict) for rule in observed_rules}

    missing = [rule for rule in desired_rules if rule_key(rule, strict) not in observed_keys]
    extra = [rule for rule in observed_rules if rule_key(rule, strict) not in desired_keys]

    result = DriftResult(resource_name=resource_name, missing=missing, extra=extra)
    if result.is_compliant:
        logger.debug(f"No drift detected for {resource_name or 'resource'}")
    else:
        logger.info(
            f"Drift detected for {resource_name or 'resource'}: "
            f"{len(missing)} missing, {len(extra)} extra"
        )
    return result


def describe_drift(result: DriftResult) -> str:
    """Human readable summary, extra rules first then missing rules."""
    if result.is_compliant:
        return COMPLIANT_DETAILS
    parts = [f"Extra: {rule.id}" for rule in result.extra]
    parts.extend(f"Missing: {rule.id}" for rule in result.missing)
    return ", ".join(parts)


def build_notices(result: DriftResult) -> List[DriftNotice]:
    """
    Turn a drift result into per-rule notifier records.

    Args:
        result: Drift result of one resource

    Returns:
        One notice per extra rule followed by one per missing rule
    """
    notices = []
    for rule in result.extra:
        notices.append(DriftNotice(
            resource=result.resource_name,
            issue=f"Extra: {rule.id}",
            expected="absent",
            actual=f"{rule.port}/{rule.protocol.value}"
        ))
    for rule in result.missing:
        notices.append(DriftNotice(
            resource=result.resource_name,
            issue=f"Missing: {rule.id}",
            expected=f"{rule.port}/{rule.protocol.value}",
            actual="absent"
        ))
    return notices
