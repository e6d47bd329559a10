"""Policy loader - read policy definitions from YAML."""

import yaml
from pathlib import Path
from typing import List, Union
from pydantic import ValidationError
from ..utils.errors import PolicyError
from ..utils.logging import get_logger
from .models import Policy

logger = get_logger("policy.loader")


def load_policies(policy_file: Union[str, Path]) -> List[Policy]:
    """
    Load policies from a YAML file of the form ``{policies: [...]}``.

    Args:
        policy_file: Path to policy YAML file

    Returns:
        List of Policy objects, in file order

    Raises:
        PolicyError: If the file is missing, not YAML, or a policy is invalid
    """
    policy_path = Path(policy_file)

    if not policy_path.is_file():
        raise PolicyError(f"Policy file not found: {policy_file}")

    try:
        with open(policy_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PolicyError(f"Invalid YAML in policy file: {e}")
    except OSError as e:
        raise PolicyError(f"Error reading policy file: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("policies"), list):
        raise PolicyError("Policy file must contain a 'policies' list")

    policies = []
    seen_ids = set()
    for idx, entry in enumerate(data["policies"]):
        if not isinstance(entry, dict):
            raise PolicyError(f"Policy at index {idx} must be a mapping")
        try:
            policy = Policy(**entry)
        except ValidationError as e:
            raise PolicyError(f"Invalid policy at index {idx}: {e}")
        if policy.id in seen_ids:
            raise PolicyError(f"Duplicate policy id '{policy.id}'")
        seen_ids.add(policy.id)
        policies.append(policy)

    logger.info(f"Loaded {len(policies)} policies from {policy_file}")
    return policies


def validate_policy_file(policy_file: Union[str, Path]) -> bool:
    """Validate a policy file; raises PolicyError when invalid."""
    load_policies(policy_file)
    return True
