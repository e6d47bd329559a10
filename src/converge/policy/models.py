"""Policy models - declarative policy definitions."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from ..engine.models import OperationType


class Action(str, Enum):
    """Policy action to take when policy matches."""
    ALLOW = "allow"
    FAIL = "fail"
    WARN = "warn"


class MatchRule(BaseModel):
    """Rule for matching policies against planned operations."""

    action: Optional[OperationType] = Field(None, description="Match operation type (create, update, replace, destroy)")
    resource_type: Optional[str] = Field(None, description="Match resource type (e.g., 'bucket')")
    address: Optional[str] = Field(None, description="Match address, shell-style wildcards allowed")
    drift: Optional[bool] = Field(None, description="Match operations caused by drift")

    class Config:
        use_enum_values = True


class Policy(BaseModel):
    """Policy definition - declarative, no code."""

    id: str = Field(..., description="Unique policy identifier")
    description: str = Field(..., description="Human-readable policy description")
    match: MatchRule = Field(..., description="Matching rules")
    action: Action = Field(..., description="Action to take when policy matches")

    class Config:
        use_enum_values = True


class PolicyResult(BaseModel):
    """Result of evaluating one policy."""

    policy_id: str = Field(..., description="ID of the policy")
    matched: bool = Field(..., description="Whether the policy matched")
    action: Action = Field(..., description="Action to take")
    addresses: List[str] = Field(default_factory=list, description="Addresses of matching operations")
    explanation: str = Field(..., description="Human-readable explanation of the match")


class PolicyEvaluationResult(BaseModel):
    """Complete result of policy evaluation."""

    passed: bool = Field(..., description="Whether all policies passed")
    results: List[PolicyResult] = Field(default_factory=list, description="Individual policy results")
    failure_count: int = Field(default=0, description="Number of policies that failed")
    warning_count: int = Field(default=0, description="Number of policies that warned")

    class Config:
        use_enum_values = True
