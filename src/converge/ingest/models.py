"""Pydantic models for desired resources."""

from typing import List, Dict, Any, Tuple
from pydantic import BaseModel, Field

from .references import find_references


class ResourceNode(BaseModel):
    """A declared resource: type tag, logical name, attributes and dependency edges."""
    type: str = Field(..., pattern=r"^[a-z][a-z0-9_]*$", description="Resource type tag")
    name: str = Field(..., pattern=r"^[A-Za-z0-9_-]+$", description="Logical name, unique per type")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Declared attribute mapping")
    depends_on: Tuple[str, ...] = Field(default_factory=tuple, description="Explicit dependency addresses")

    class Config:
        """Pydantic config."""
        frozen = True
        extra = "forbid"

    @property
    def address(self) -> str:
        """Logical address, e.g. ``bucket.site``."""
        return f"{self.type}.{self.name}"

    def references(self) -> List[str]:
        """Addresses referenced through ``${type.name.attr}`` expressions."""
        return sorted({ref.address for ref in find_references(self.attributes)})

    def dependencies(self) -> List[str]:
        """All dependency addresses: explicit ``depends_on`` plus attribute references."""
        deps = set(self.depends_on)
        deps.update(self.references())
        deps.discard(self.address)
        return sorted(deps)


class DesiredState(BaseModel):
    """Desired state document - ordered collection of resource nodes."""
    format_version: str = Field(default="1.0", description="Document format version")
    resources: List[ResourceNode] = Field(default_factory=list, description="Declared resources")

    def addresses(self) -> List[str]:
        """Addresses in declaration order."""
        return [node.address for node in self.resources]

    def get(self, address: str):
        """Return the node at ``address`` or None."""
        for node in self.resources:
            if node.address == address:
                return node
        return None
