"""Pydantic models for plans and apply results."""

from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional
from pydantic import BaseModel, Field
from ..ingest.models import ResourceNode
from ..state.models import StateRecord, utc_now


class OperationType(str, Enum):
    """Planned operation kinds."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DESTROY = "destroy"
    NO_OP = "no-op"


CHANGING_OPERATIONS = (OperationType.CREATE, OperationType.UPDATE, OperationType.REPLACE, OperationType.DESTROY)


class PlannedOperation(BaseModel):
    """One step of a plan."""
    address: str = Field(..., description="Logical address of the resource")
    action: OperationType = Field(..., description="Operation to perform")
    node: Optional[ResourceNode] = Field(default=None, description="Desired node (absent for destroy)")
    prior: Optional[StateRecord] = Field(default=None, description="Prior state record (absent for create)")
    changed_attributes: List[str] = Field(default_factory=list, description="Attributes that differ")
    replace_reasons: List[str] = Field(default_factory=list, description="Immutable attributes forcing replacement")
    drift: bool = Field(default=False, description="Live state diverged from last-applied state")
    wait_for: List[str] = Field(default_factory=list, description="Addresses with a step that must finish before a step of this operation")

    @property
    def resource_type(self) -> str:
        if self.node is not None:
            return self.node.type
        return self.prior.type

    @property
    def is_change(self) -> bool:
        return self.action != OperationType.NO_OP


class Plan(BaseModel):
    """Ordered sequence of operations computed against one state serial."""
    operations: List[PlannedOperation] = Field(default_factory=list)
    state_serial: int = Field(default=0, ge=0, description="State store serial the plan was computed against")
    destroy: bool = Field(default=False, description="Plan destroys every resource in state")
    desired_hash: Optional[str] = Field(default=None, description="Hash of the desired-state document")
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def changes(self) -> List[PlannedOperation]:
        return [op for op in self.operations if op.is_change]

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def get(self, address: str) -> Optional[PlannedOperation]:
        for op in self.operations:
            if op.address == address:
                return op
        return None

    def summary(self) -> Dict[str, int]:
        """Count of operations per action."""
        counts = {action.value: 0 for action in OperationType}
        for op in self.operations:
            counts[OperationType(op.action).value] += 1
        return counts


class ApplyResult(BaseModel):
    """Outcome of executing a plan."""
    applied: List[str] = Field(default_factory=list, description="Addresses applied successfully, in completion order")
    failed: Dict[str, str] = Field(default_factory=dict, description="Address -> error message")
    skipped: List[str] = Field(default_factory=list, description="Not attempted because a dependency failed")
    cancelled: List[str] = Field(default_factory=list, description="Not attempted because of an interrupt")
    interrupted: bool = Field(default=False)

    @property
    def success(self) -> bool:
        return not self.failed and not self.skipped and not self.cancelled and not self.interrupted
