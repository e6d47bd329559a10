"""Policy engine for deterministic checks of plans before apply."""

from .models import Policy, MatchRule, Action, PolicyResult, PolicyEvaluationResult
from .loader import load_policies, validate_policy_file
from .engine import evaluate_policies, check_policies

__all__ = [
    "Policy",
    "MatchRule",
    "Action",
    "PolicyResult",
    "PolicyEvaluationResult",
    "load_policies",
    "validate_policy_file",
    "evaluate_policies",
    "check_policies",
]
