"""In-process provider simulating a cloud API, with optional file persistence."""

import copy
import json
import os
import threading
import uuid
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Deque, Dict, Optional, Tuple, Union
import yaml
from .base import Provider
from .schema import ResourceSchema, AttributeSpec, permissive_schema
from ..utils.errors import FatalProviderError, ProviderError, SchemaViolation
from ..utils.logging import get_logger

logger = get_logger("providers.memory")

CATALOG_PATH = Path(__file__).parent / "catalog.yaml"


def load_catalog(path: Union[str, Path] = CATALOG_PATH) -> Dict[str, Dict[str, Any]]:
    """Load resource schemas and computed-attribute templates from YAML."""
    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    catalog = {}
    for resource_type, entry in raw.items():
        entry = entry or {}
        schema = ResourceSchema(
            type=resource_type,
            attributes={name: AttributeSpec(**spec) for name, spec in (entry.get("attributes") or {}).items()},
            allow_extra=bool(entry.get("allow_extra", False)),
        )
        catalog[resource_type] = {"schema": schema, "computed": entry.get("computed") or {}}
    return catalog


class MemoryProvider(Provider):
    """
    Thread-safe simulated provider.

    Resources live in a dict keyed by provider id. When ``store_path`` is
    given, the dict is persisted as JSON after every mutation so separate
    CLI invocations observe the same "live" state.
    """

    name = "memory"

    def __init__(
        self,
        store_path: Optional[Union[str, Path]] = None,
        allow_unknown_types: bool = False,
        catalog_path: Optional[Union[str, Path]] = None,
    ):
        self.store_path = Path(store_path) if store_path else None
        self.allow_unknown_types = allow_unknown_types
        self._catalog = load_catalog(catalog_path or CATALOG_PATH)
        self._lock = threading.Lock()
        self._resources: Dict[str, Dict[str, Any]] = {}
        self._idempotency: Dict[str, str] = {}
        self._faults: Dict[Tuple[str, str], Deque[ProviderError]] = defaultdict(deque)
        self.calls: Deque[Tuple[str, str]] = deque(maxlen=1000)
        self._load()

    def schema(self, resource_type: str) -> ResourceSchema:
        entry = self._catalog.get(resource_type)
        if entry is not None:
            return entry["schema"]
        if self.allow_unknown_types:
            return permissive_schema(resource_type)
        raise SchemaViolation(
            f"Unsupported resource type '{resource_type}'. "
            f"Supported types: {', '.join(sorted(self._catalog))}"
        )

    def fail_next(self, operation: str, resource_type: str, error: ProviderError, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` on ``resource_type`` raise ``error``."""
        with self._lock:
            for _ in range(times):
                self._faults[(operation, resource_type)].append(error)

    def read(self, resource_type: str, provider_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._record_call("read", resource_type)
            entry = self._resources.get(provider_id)
            if entry is None or entry["type"] != resource_type:
                return None
            return copy.deepcopy(entry["attributes"])

    def create(
        self,
        resource_type: str,
        attributes: Dict[str, Any],
        idempotency_key: Optional[str] = None
    ) -> Tuple[str, Dict[str, Any]]:
        self._check_attributes(resource_type, attributes)
        with self._lock:
            self._record_call("create", resource_type)
            if idempotency_key and idempotency_key in self._idempotency:
                existing_id = self._idempotency[idempotency_key]
                if existing_id in self._resources:
                    logger.debug(f"Idempotent create replayed for {resource_type} {existing_id}")
                    return existing_id, copy.deepcopy(self._resources[existing_id]["attributes"])

            provider_id = f"{resource_type}-{uuid.uuid4().hex[:12]}"
            applied = self._with_computed(resource_type, provider_id, attributes)
            self._resources[provider_id] = {"type": resource_type, "attributes": applied}
            if idempotency_key:
                self._idempotency[idempotency_key] = provider_id
            self._save()
            logger.debug(f"Created {resource_type} {provider_id}")
            return provider_id, copy.deepcopy(applied)

    def update(self, resource_type: str, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        self._check_attributes(resource_type, attributes)
        with self._lock:
            self._record_call("update", resource_type)
            entry = self._resources.get(provider_id)
            if entry is None:
                raise FatalProviderError(f"{resource_type} {provider_id} does not exist")

            schema = self.schema(resource_type)
            for name in schema.immutable_attributes():
                if entry["attributes"].get(name) != attributes.get(name):
                    raise FatalProviderError(
                        f"Attribute '{name}' of {resource_type} cannot be changed in place"
                    )

            applied = self._with_computed(resource_type, provider_id, attributes)
            entry["attributes"] = applied
            self._save()
            logger.debug(f"Updated {resource_type} {provider_id}")
            return copy.deepcopy(applied)

    def delete(self, resource_type: str, provider_id: str) -> None:
        with self._lock:
            self._record_call("delete", resource_type)
            entry = self._resources.get(provider_id)
            if entry is None or entry["type"] != resource_type:
                raise FatalProviderError(f"{resource_type} {provider_id} does not exist")
            del self._resources[provider_id]
            self._idempotency = {k: v for k, v in self._idempotency.items() if v != provider_id}
            self._save()
            logger.debug(f"Deleted {resource_type} {provider_id}")

    def remove_out_of_band(self, provider_id: str) -> None:
        """Delete a resource behind the engine's back (simulates drift)."""
        with self._lock:
            self._resources.pop(provider_id, None)
            self._save()

    def modify_out_of_band(self, provider_id: str, **attributes: Any) -> None:
        """Change live attributes behind the engine's back (simulates drift)."""
        with self._lock:
            self._resources[provider_id]["attributes"].update(attributes)
            self._save()

    def resource_count(self) -> int:
        with self._lock:
            return len(self._resources)

    def _record_call(self, operation: str, resource_type: str) -> None:
        self.calls.append((operation, resource_type))
        faults = self._faults.get((operation, resource_type))
        if faults:
            raise faults.popleft()

    def _check_attributes(self, resource_type: str, attributes: Dict[str, Any]) -> None:
        problems = self.schema(resource_type).validate_attributes(attributes)
        if problems:
            raise FatalProviderError(f"Invalid parameters for {resource_type}: {'; '.join(problems)}")

    def _with_computed(self, resource_type: str, provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        applied = copy.deepcopy(attributes)
        templates = self._catalog.get(resource_type, {}).get("computed", {})
        values = dict(attributes, id=provider_id)
        for name, template in templates.items():
            try:
                applied[name] = template.format(**values)
            except (KeyError, IndexError, ValueError):
                applied[name] = f"{name}-{provider_id}"
        return applied

    def _load(self) -> None:
        if not self.store_path or not self.store_path.exists():
            return
        try:
            with open(self.store_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise FatalProviderError(f"Cannot read provider store {self.store_path}: {e}")
        self._resources = data.get("resources", {})
        self._idempotency = data.get("idempotency", {})
        logger.debug(f"Loaded {len(self._resources)} live resources from {self.store_path}")

    def _save(self) -> None:
        if not self.store_path:
            return
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.store_path.with_name(self.store_path.name + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump({"resources": self._resources, "idempotency": self._idempotency}, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.store_path)
