"""Provider-defined resource schemas."""

from enum import Enum
from typing import Dict, Any, List
from pydantic import BaseModel, Field

from ..ingest.references import REFERENCE_PATTERN


class AttributeType(str, Enum):
    """Shapes an attribute value may take."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAPPING = "mapping"
    ANY = "any"


class AttributeSpec(BaseModel):
    """Schema of a single attribute."""
    type: AttributeType = Field(default=AttributeType.ANY, description="Expected value shape")
    required: bool = Field(default=False, description="Attribute must be declared")
    immutable: bool = Field(default=False, description="Changing the value forces replacement")
    computed: bool = Field(default=False, description="Value is assigned by the provider")


class ResourceSchema(BaseModel):
    """Schema for one resource type."""
    type: str = Field(..., description="Resource type tag")
    attributes: Dict[str, AttributeSpec] = Field(default_factory=dict)
    allow_extra: bool = Field(default=False, description="Accept attributes not listed in the schema")

    def immutable_attributes(self) -> List[str]:
        return sorted(name for name, spec in self.attributes.items() if spec.immutable)

    def validate_attributes(self, attributes: Dict[str, Any]) -> List[str]:
        """
        Check declared attributes against the schema.

        Values that are reference expressions are only known after apply, so
        their shape is not checked.

        Returns:
            List of problems (empty if valid)
        """
        problems = []

        for name, spec in sorted(self.attributes.items()):
            if spec.required and name not in attributes:
                problems.append(f"missing required attribute '{name}'")

        for name, value in sorted(attributes.items()):
            spec = self.attributes.get(name)
            if spec is None:
                if not self.allow_extra:
                    problems.append(f"unknown attribute '{name}'")
                continue
            if spec.computed:
                problems.append(f"attribute '{name}' is computed by the provider and cannot be set")
                continue
            if isinstance(value, str) and REFERENCE_PATTERN.fullmatch(value):
                continue
            if not _matches_type(value, spec.type):
                problems.append(
                    f"attribute '{name}' must be of type {spec.type.value}, got {type(value).__name__}"
                )

        return problems


def _matches_type(value: Any, expected: AttributeType) -> bool:
    if expected == AttributeType.ANY:
        return True
    if expected == AttributeType.STRING:
        return isinstance(value, str)
    if expected == AttributeType.BOOLEAN:
        return isinstance(value, bool)
    if expected == AttributeType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == AttributeType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == AttributeType.LIST:
        return isinstance(value, list)
    if expected == AttributeType.MAPPING:
        return isinstance(value, dict)
    return False


def permissive_schema(resource_type: str) -> ResourceSchema:
    """Schema that accepts any attributes and treats none as immutable."""
    return ResourceSchema(type=resource_type, allow_extra=True)
