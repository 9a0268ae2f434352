"""
Rule Matching
-------------
Identity key used to correlate an observed rule with a desired rule.
"""

from typing import Tuple, Union

from driftwatch.core.drift.types import Rule

RuleKey = Union[str, Tuple[str, int, str]]


def rule_key(rule: Rule, strict: bool = False) -> RuleKey:
    """
    Compute the matching key of a rule.

    Args:
        rule: Rule to key
        strict: Also match on port and protocol

    Returns:
        The rule id, or ``(id, port, protocol)`` in strict mode
    """
    if strict:
        return (rule.id, rule.port, rule.protocol.value)
    return rule.id
