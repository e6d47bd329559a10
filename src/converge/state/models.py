"""Pydantic models for persisted state."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateRecord(BaseModel):
    """Last-applied snapshot of one live resource, keyed by logical address."""
    address: str = Field(..., description="Logical address (type.name)")
    type: str = Field(..., description="Resource type tag")
    name: str = Field(..., description="Logical name")
    provider_id: str = Field(..., description="Identifier assigned by the provider")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Applied attributes as returned by the provider")
    dependencies: List[str] = Field(default_factory=list, description="Dependency addresses at apply time")
    serial: int = Field(default=0, ge=0, description="Journal serial of the write that produced this record")
    updated_at: datetime = Field(default_factory=utc_now)


class JournalOp(str, Enum):
    """Kinds of journal entries."""
    PUT = "put"
    DELETE = "delete"
    CHECKPOINT = "checkpoint"


class JournalEntry(BaseModel):
    """One line of the append-only state journal."""
    serial: int = Field(..., ge=1)
    op: JournalOp
    address: str
    record: Optional[StateRecord] = None

    class Config:
        use_enum_values = True
