"""Saved plan files: write a plan for later apply, and read it back."""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Union
from pydantic import ValidationError
from .. import __version__
from ..engine.models import Plan
from ..state.store import StateStore
from ..utils.errors import ConvergeError, StateConflict
from ..utils.logging import get_logger

logger = get_logger("report.plan_file")

PLAN_FILE_FORMAT = "1"


def document_hash(document: Dict[str, Any]) -> str:
    """Stable hash of a parsed desired-state document."""
    payload = json.dumps(document, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def save_plan(plan: Plan, output_path: Union[str, Path]) -> Path:
    """
    Write a plan as JSON.

    Args:
        plan: Scheduled plan
        output_path: Destination file

    Returns:
        Path written

    Raises:
        ConvergeError: If the file cannot be written
    """
    path = Path(output_path)
    payload = {
        "plan_format": PLAN_FILE_FORMAT,
        "converge_version": __version__,
        "plan": json.loads(plan.model_dump_json()),
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
    except OSError as e:
        raise ConvergeError(f"Failed to write plan file {path}: {e}")

    logger.info(f"Saved plan with {len(plan.changes)} changes to {path}")
    return path


def load_plan(plan_path: Union[str, Path]) -> Plan:
    """
    Read a plan written by save_plan.

    Raises:
        ConvergeError: If the file is not a readable plan
    """
    path = Path(plan_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConvergeError(f"Cannot read plan file {path}: {e}")

    if not isinstance(payload, dict) or payload.get("plan_format") != PLAN_FILE_FORMAT:
        raise ConvergeError(f"{path} is not a converge plan file (format {PLAN_FILE_FORMAT})")

    try:
        return Plan.model_validate(payload["plan"])
    except (KeyError, ValidationError) as e:
        raise ConvergeError(f"Invalid plan in {path}: {e}")


def is_plan_file(path: Union[str, Path]) -> bool:
    """Whether ``path`` looks like a saved plan rather than a desired-state document."""
    path = Path(path)
    if path.suffix.lower() != ".json" or not path.is_file():
        return False
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError):
        return False
    return isinstance(payload, dict) and "plan_format" in payload


def ensure_plan_current(plan: Plan, store: StateStore) -> None:
    """
    Refuse to apply a plan computed against an older state.

    Raises:
        StateConflict: If the state serial moved since the plan was made
    """
    if plan.state_serial != store.serial:
        raise StateConflict(
            f"Saved plan is stale: computed at state serial {plan.state_serial}, "
            f"state is now at serial {store.serial}. Create a new plan."
        )
