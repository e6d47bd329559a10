"""Tests for policy engine."""

import pytest
from converge.engine.models import OperationType, Plan, PlannedOperation
from converge.ingest.models import ResourceNode
from converge.policy.engine import check_policies, evaluate_policies, _match_operation
from converge.policy.loader import load_policies
from converge.policy.models import Action, MatchRule, Policy
from converge.state.models import StateRecord
from converge.utils.errors import PolicyError


@pytest.fixture
def sample_plan():
    """Plan replacing a bucket, creating a distribution and destroying a policy."""
    bucket = ResourceNode(type="bucket", name="site", attributes={"bucket_name": "new"})
    cdn = ResourceNode(type="cdn_distribution", name="site", attributes={"origin_domain": "x"})
    old_policy = StateRecord(address="bucket_policy.old", type="bucket_policy", name="old", provider_id="p-1")
    return Plan(operations=[
        PlannedOperation(address="bucket.site", action=OperationType.REPLACE, node=bucket,
                         changed_attributes=["bucket_name"], replace_reasons=["bucket_name"]),
        PlannedOperation(address="cdn_distribution.site", action=OperationType.CREATE, node=cdn, drift=True),
        PlannedOperation(address="bucket_policy.old", action=OperationType.DESTROY, prior=old_policy),
        PlannedOperation(address="web_acl.main", action=OperationType.NO_OP,
                         node=ResourceNode(type="web_acl", name="main")),
    ])


class TestPolicyEngine:
    """Test policy evaluation."""

    def test_evaluate_policies_no_match(self, sample_plan):
        """Test policy evaluation with no matching policies."""
        policies = [
            Policy(id="no-acl-changes", description="WAF is managed elsewhere",
                   match=MatchRule(resource_type="web_acl"), action=Action.FAIL)
        ]

        result = evaluate_policies(sample_plan, policies)

        assert result.passed is True
        assert result.failure_count == 0
        assert result.results[0].matched is False

    def test_evaluate_policies_match_fail(self, sample_plan):
        policies = [
            Policy(id="no-replace", description="Buckets must not be replaced",
                   match=MatchRule(action=OperationType.REPLACE, resource_type="bucket"), action=Action.FAIL)
        ]

        result = evaluate_policies(sample_plan, policies)

        assert result.passed is False
        assert result.failure_count == 1
        assert result.results[0].addresses == ["bucket.site"]

    def test_evaluate_policies_warn_passes(self, sample_plan):
        policies = [
            Policy(id="destroys", description="Destroys need a second look",
                   match=MatchRule(action="destroy"), action=Action.WARN)
        ]

        result = evaluate_policies(sample_plan, policies)

        assert result.passed is True
        assert result.warning_count == 1

    def test_match_address_glob_and_drift(self, sample_plan):
        cdn_op = sample_plan.get("cdn_distribution.site")
        assert _match_operation(MatchRule(address="cdn_*"), cdn_op)
        assert _match_operation(MatchRule(drift=True), cdn_op)
        assert not _match_operation(MatchRule(address="bucket.*"), cdn_op)
        assert not _match_operation(MatchRule(drift=False), cdn_op)

    def test_no_op_never_matches(self, sample_plan):
        policies = [
            Policy(id="acl", description="Any WAF", match=MatchRule(address="web_acl.*"), action=Action.FAIL)
        ]
        assert evaluate_policies(sample_plan, policies).passed


class TestPolicyLoader:

    def test_load_and_check(self, sample_plan, tmp_path):
        policy_file = tmp_path / "policies.yaml"
        policy_file.write_text(
            "policies:\n"
            "  - id: protect-buckets\n"
            "    description: Buckets are never destroyed or replaced\n"
            "    match: {action: replace, resource_type: bucket}\n"
            "    action: fail\n"
        )

        assert [p.id for p in load_policies(policy_file)] == ["protect-buckets"]
        assert check_policies(sample_plan, str(policy_file)).passed is False

    def test_duplicate_ids(self, tmp_path):
        policy_file = tmp_path / "policies.yaml"
        policy_file.write_text(
            "policies:\n"
            "  - {id: a, description: one, match: {}, action: warn}\n"
            "  - {id: a, description: two, match: {}, action: warn}\n"
        )
        with pytest.raises(PolicyError, match="Duplicate policy id"):
            load_policies(policy_file)

    def test_invalid_action(self, tmp_path):
        policy_file = tmp_path / "policies.yaml"
        policy_file.write_text("policies:\n  - {id: a, description: x, match: {action: explode}, action: fail}\n")
        with pytest.raises(PolicyError, match="index 0"):
            load_policies(policy_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyError, match="not found"):
            load_policies(tmp_path / "none.yaml")
