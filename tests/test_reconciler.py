import pytest

from driftwatch.core.drift import (
    LiveState,
    RemediationType,
    Rule,
    detect,
    plan_remediation,
    reconcile,
)
from driftwatch.core.exceptions import MalformedStateError

WEB_IN = Rule(id="web-in", port=80, protocol="tcp")
SSH_IN = Rule(id="ssh-in", port=22, protocol="tcp")
ROGUE = Rule(id="rogue", port=4444, protocol="tcp")


def test_reconcile_removes_extra_and_appends_missing():
    observed = [WEB_IN, ROGUE]
    result = detect([WEB_IN, SSH_IN], observed, resource_name="web-sg")

    assert reconcile(observed, result) == [WEB_IN, SSH_IN]


def test_plan_remediation_actions_in_order():
    observed = [ROGUE, WEB_IN]
    result = detect([WEB_IN, SSH_IN], observed, resource_name="web-sg")
    corrected, actions = plan_remediation(observed, result)

    assert corrected == [WEB_IN, SSH_IN]
    assert [(a.action, a.rule.id) for a in actions] == [
        (RemediationType.REMOVE, "rogue"),
        (RemediationType.ADD, "ssh-in"),
    ]
    assert all(a.resource_name == "web-sg" for a in actions)


def test_reconcile_is_idempotent():
    desired = [WEB_IN, SSH_IN]
    observed = [ROGUE, WEB_IN]
    corrected = reconcile(observed, detect(desired, observed))

    again = detect(desired, corrected)
    assert again.missing == []
    assert again.extra == []


def test_reconcile_strict_restores_policy_attributes():
    moved = Rule(id="web-in", port=8080, protocol="udp")
    result = detect([WEB_IN], [moved], strict=True)
    corrected = reconcile([moved], result)

    assert corrected == [WEB_IN]
    assert detect([WEB_IN], corrected, strict=True).is_compliant


def test_reconcile_compliant_is_unchanged():
    observed = [WEB_IN, SSH_IN]
    corrected, actions = plan_remediation(observed, detect(observed, observed))

    assert corrected == observed
    assert actions == []


def test_reconcile_does_not_mutate_observed():
    observed = [WEB_IN, ROGUE]
    reconcile(observed, detect([WEB_IN, SSH_IN], observed))
    assert observed == [WEB_IN, ROGUE]


def test_reconcile_rejects_malformed_observed():
    result = detect([WEB_IN], [])
    with pytest.raises(MalformedStateError):
        reconcile({"id": "web-in"}, result)
    with pytest.raises(MalformedStateError):
        reconcile([{"id": "web-in", "port": 80, "protocol": "tcp"}], result)


# ========== LIVE STATE SNAPSHOT TESTS ========== #

def test_live_state_rules_for():
    state = LiveState(resources={
        "web-sg": {"active_rules": [WEB_IN.to_record(), ROGUE.to_record()]},
        "empty-sg": {},
    })

    assert state.rules_for("web-sg") == [WEB_IN, ROGUE]
    assert state.rules_for("empty-sg") == []
    assert state.rules_for("unknown-sg") == []


@pytest.mark.parametrize("entry", [
    "not-an-object",
    {"active_rules": "web-in"},
    {"active_rules": [{"id": "web-in", "port": "http", "protocol": "tcp"}]},
    {"active_rules": [{"id": "web-in", "port": 80, "protocol": "gre"}]},
])
def test_live_state_malformed_entries(entry):
    state = LiveState(resources={"web-sg": entry})
    with pytest.raises(MalformedStateError) as exc_info:
        state.rules_for("web-sg")
    assert exc_info.value.resource_name == "web-sg"


def test_live_state_with_rules_returns_new_snapshot():
    original = {"web-sg": {"active_rules": [ROGUE.to_record()], "region": "eu-west-1"}}
    state = LiveState(resources=original)

    updated = state.with_rules("web-sg", [WEB_IN, SSH_IN])
    created = updated.with_rules("db-sg", [SSH_IN])

    assert state.rules_for("web-sg") == [ROGUE]
    assert original["web-sg"]["active_rules"] == [ROGUE.to_record()]
    assert updated.rules_for("web-sg") == [WEB_IN, SSH_IN]
    assert updated.to_dict()["web-sg"]["region"] == "eu-west-1"
    assert created.to_dict()["db-sg"] == {"active_rules": [SSH_IN.to_record()]}


def test_live_state_with_rules_keeps_extra_rule_keys():
    described = dict(WEB_IN.to_record(), description="public http")
    state = LiveState(resources={"web-sg": {"active_rules": [described, ROGUE.to_record()]}})

    updated = state.with_rules("web-sg", [WEB_IN, SSH_IN])

    assert updated.to_dict()["web-sg"]["active_rules"] == [
        {"id": "web-in", "port": 80, "protocol": "tcp", "description": "public http"},
        SSH_IN.to_record(),
    ]
    assert state.to_dict()["web-sg"]["active_rules"][0] == described


def test_live_state_with_rules_rewrites_changed_attributes():
    moved = {"id": "web-in", "port": 8080, "protocol": "tcp", "description": "moved"}
    state = LiveState(resources={"web-sg": {"active_rules": [moved]}})

    updated = state.with_rules("web-sg", [WEB_IN])

    assert updated.to_dict()["web-sg"]["active_rules"] == [WEB_IN.to_record()]
