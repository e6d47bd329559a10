"""Validate desired-state document structure."""

from typing import Dict, Any, List
from ..utils.errors import SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("ingest.desired_validator")

SUPPORTED_MAJOR_VERSIONS = ["1"]
RESOURCE_FIELDS = {"type", "name", "attributes", "depends_on"}


def validate_document_structure(document: Dict[str, Any]) -> None:
    """
    Validate desired-state document structure.

    Args:
        document: Parsed desired-state document

    Raises:
        SchemaViolation: If the document structure is invalid
    """
    if not isinstance(document, dict):
        raise SchemaViolation(
            "Desired state must be a mapping with 'format_version' and 'resources' keys."
        )

    format_version = document.get("format_version")
    if format_version is None:
        raise SchemaViolation("Desired state missing required field: format_version")
    if not isinstance(format_version, str):
        raise SchemaViolation("'format_version' must be a string, e.g. \"1.0\"")

    major = format_version.split(".")[0]
    if major not in SUPPORTED_MAJOR_VERSIONS:
        raise SchemaViolation(
            f"Unsupported format_version '{format_version}'. "
            f"Supported major versions: {', '.join(SUPPORTED_MAJOR_VERSIONS)}"
        )

    resources = document.get("resources", [])
    if resources is None:
        resources = []
    if not isinstance(resources, list):
        raise SchemaViolation("'resources' must be a list")

    problems = []
    for idx, resource in enumerate(resources):
        for problem in validate_resource_entry(resource):
            problems.append(f"resources[{idx}]: {problem}")

    if problems:
        raise SchemaViolation("Invalid desired state:\n  " + "\n  ".join(problems))

    logger.debug("Desired state structure validation passed")


def validate_resource_entry(resource: Any) -> List[str]:
    """
    Validate a single resource entry.

    Args:
        resource: Resource entry from the document

    Returns:
        List of problems (empty if valid)
    """
    problems = []

    if not isinstance(resource, dict):
        problems.append("resource entry must be a mapping")
        return problems

    missing = [f for f in ("type", "name") if f not in resource]
    if missing:
        problems.append(f"missing required fields: {', '.join(missing)}")

    unknown = sorted(set(resource) - RESOURCE_FIELDS)
    if unknown:
        problems.append(f"unknown fields: {', '.join(unknown)}")

    for field in ("type", "name"):
        if field in resource and not isinstance(resource[field], str):
            problems.append(f"'{field}' must be a string")

    attributes = resource.get("attributes", {})
    if attributes is not None and not isinstance(attributes, dict):
        problems.append("'attributes' must be a mapping")

    depends_on = resource.get("depends_on", [])
    if depends_on is not None:
        if not isinstance(depends_on, list) or not all(isinstance(d, str) for d in depends_on):
            problems.append("'depends_on' must be a list of resource addresses")

    return problems


def get_document_summary(document: Dict[str, Any]) -> Dict[str, Any]:
    """Extract summary information (version, resource count, count per type)."""
    resources = document.get("resources") or []
    type_counts: Dict[str, int] = {}
    for resource in resources:
        resource_type = resource.get("type", "unknown")
        type_counts[resource_type] = type_counts.get(resource_type, 0) + 1

    return {
        "format_version": document.get("format_version", "unknown"),
        "resource_count": len(resources),
        "type_counts": type_counts,
    }
