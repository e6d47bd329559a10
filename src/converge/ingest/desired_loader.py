"""Load and validate desired-state documents."""

import json
from pathlib import Path
from typing import Dict, Any, Union
import yaml
from pydantic import ValidationError
from .models import DesiredState, ResourceNode
from .desired_validator import validate_document_structure, get_document_summary
from ..utils.errors import DesiredStateLoadError, SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("ingest.desired_loader")


def read_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a desired-state document from YAML or JSON.

    Args:
        path: Path to a ``.yaml``/``.yml`` or ``.json`` file

    Returns:
        Parsed document

    Raises:
        DesiredStateLoadError: If the file cannot be read or parsed
    """
    path = Path(path)

    if not path.exists():
        raise DesiredStateLoadError(
            f"Desired state file not found: {path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise DesiredStateLoadError(f"Path is not a file: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise DesiredStateLoadError(f"Invalid JSON in desired state file: {e}")
    except yaml.YAMLError as e:
        raise DesiredStateLoadError(f"Invalid YAML in desired state file: {e}")
    except OSError as e:
        raise DesiredStateLoadError(
            f"Error reading desired state file: {e}. "
            "Please check file permissions and try again."
        )

    return document


def parse_desired_state(document: Dict[str, Any]) -> DesiredState:
    """
    Turn a parsed document into a DesiredState.

    Raises:
        SchemaViolation: On bad shape, duplicate addresses or dangling references
    """
    validate_document_structure(document)

    nodes = []
    for idx, entry in enumerate(document.get("resources") or []):
        try:
            nodes.append(ResourceNode(
                type=entry["type"],
                name=entry["name"],
                attributes=entry.get("attributes") or {},
                depends_on=tuple(entry.get("depends_on") or ()),
            ))
        except ValidationError as e:
            raise SchemaViolation(f"Invalid resource at index {idx}: {e}")

    seen = set()
    for node in nodes:
        if node.address in seen:
            raise SchemaViolation(f"Duplicate resource address: {node.address}", address=node.address)
        seen.add(node.address)

    for node in nodes:
        for dep in node.dependencies():
            if dep not in seen:
                raise SchemaViolation(
                    f"Reference to undeclared resource '{dep}'",
                    address=node.address
                )

    return DesiredState(format_version=document["format_version"], resources=nodes)


def load_desired_state(path: Union[str, Path]) -> DesiredState:
    """
    Load, validate and parse a desired-state file.

    Args:
        path: Path to desired-state YAML or JSON file

    Returns:
        Parsed DesiredState

    Raises:
        DesiredStateLoadError: If the file cannot be loaded
        SchemaViolation: If the document is invalid
    """
    document = read_document(path)
    desired = parse_desired_state(document)

    summary = get_document_summary(document)
    logger.info(
        f"Loaded desired state from {path} "
        f"(version: {summary['format_version']}, resources: {summary['resource_count']})"
    )
    return desired
