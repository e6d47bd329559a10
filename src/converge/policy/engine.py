"""Policy engine - deterministic policy evaluation against a plan."""

from fnmatch import fnmatchcase
from typing import List
from ..engine.models import OperationType, Plan, PlannedOperation
from ..utils.logging import get_logger
from .models import Policy, MatchRule, Action, PolicyResult, PolicyEvaluationResult
from .loader import load_policies

logger = get_logger("policy.engine")


def evaluate_policies(plan: Plan, policies: List[Policy]) -> PolicyEvaluationResult:
    """
    Evaluate policies against the changing operations of a plan.

    Args:
        plan: Scheduled plan
        policies: List of policies to evaluate

    Returns:
        PolicyEvaluationResult with evaluation results
    """
    results = []
    failure_count = 0
    warning_count = 0

    for policy in policies:
        addresses = [op.address for op in plan.changes if _match_operation(policy.match, op)]

        if addresses:
            results.append(PolicyResult(
                policy_id=policy.id,
                matched=True,
                action=policy.action,
                addresses=addresses,
                explanation=f"Policy '{policy.id}': {policy.description} ({', '.join(addresses)})"
            ))
            if policy.action == Action.FAIL:
                failure_count += 1
            elif policy.action == Action.WARN:
                warning_count += 1
        else:
            results.append(PolicyResult(
                policy_id=policy.id,
                matched=False,
                action=policy.action,
                explanation=f"Policy '{policy.id}' did not match"
            ))

    if failure_count:
        logger.warning(f"{failure_count} policies failed")

    return PolicyEvaluationResult(
        passed=failure_count == 0,
        results=results,
        failure_count=failure_count,
        warning_count=warning_count
    )


def _match_operation(match_rule: MatchRule, op: PlannedOperation) -> bool:
    """Check if a match rule matches one planned operation (all set fields must match)."""
    if match_rule.action is not None:
        if OperationType(op.action) != OperationType(match_rule.action):
            return False

    if match_rule.resource_type is not None:
        if op.resource_type != match_rule.resource_type:
            return False

    if match_rule.address is not None:
        if not fnmatchcase(op.address, match_rule.address):
            return False

    if match_rule.drift is not None:
        if op.drift != match_rule.drift:
            return False

    return True


def check_policies(plan: Plan, policy_file: str) -> PolicyEvaluationResult:
    """Load policies from ``policy_file`` and evaluate them against ``plan``."""
    policies = load_policies(policy_file)
    return evaluate_policies(plan, policies)
