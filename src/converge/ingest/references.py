"""Parse and resolve ``${type.name.attr}`` references inside attribute values."""

import re
from dataclasses import dataclass
from typing import Any, Callable, List

REFERENCE_PATTERN = re.compile(r"\$\{([a-z][a-z0-9_]*)\.([A-Za-z0-9_-]+)\.([A-Za-z0-9_]+)\}")


@dataclass(frozen=True)
class Reference:
    """A single reference expression found in an attribute value."""
    resource_type: str
    name: str
    attribute: str
    expression: str

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"


class UnresolvedReference(KeyError):
    """Raised by a lookup when a reference target has no applied value yet."""
    pass


def find_references(value: Any) -> List[Reference]:
    """Recursively collect references from strings in nested dicts and lists."""
    found: List[Reference] = []

    def walk(item: Any) -> None:
        if isinstance(item, str):
            for match in REFERENCE_PATTERN.finditer(item):
                found.append(Reference(match.group(1), match.group(2), match.group(3), match.group(0)))
        elif isinstance(item, dict):
            for nested in item.values():
                walk(nested)
        elif isinstance(item, (list, tuple)):
            for nested in item:
                walk(nested)

    walk(value)
    return found


def resolve_references(value: Any, lookup: Callable[[str, str], Any]) -> Any:
    """
    Return a copy of ``value`` with every reference replaced.

    A string that is exactly one reference takes the referenced value as-is
    (keeping its type); references embedded in longer strings are
    interpolated as text.

    Args:
        value: Attribute value (any JSON-like structure)
        lookup: Callable ``(address, attribute) -> value``; raises
            UnresolvedReference when the target is not applied yet

    Returns:
        Resolved copy of the value
    """
    if isinstance(value, str):
        whole = REFERENCE_PATTERN.fullmatch(value)
        if whole:
            return lookup(f"{whole.group(1)}.{whole.group(2)}", whole.group(3))
        return REFERENCE_PATTERN.sub(
            lambda m: str(lookup(f"{m.group(1)}.{m.group(2)}", m.group(3))),
            value,
        )
    if isinstance(value, dict):
        return {key: resolve_references(nested, lookup) for key, nested in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_references(nested, lookup) for nested in value]
    return value
