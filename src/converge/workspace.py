"""Wire configuration to a provider, a state store, a planner and an executor."""

from pathlib import Path
from typing import Any, Dict, Optional, Union
from .config import EngineConfig
from .engine.executor import Executor
from .engine.models import ApplyResult, Plan
from .engine.planner import Planner
from .ingest.desired_loader import read_document, parse_desired_state
from .ingest.models import DesiredState
from .providers.base import Provider
from .providers.registry import get_provider
from .report.plan_file import document_hash, ensure_plan_current
from .state.store import StateStore
from .utils.logging import get_logger

logger = get_logger("workspace")


class Workspace:
    """One provider plus one state store, configured from EngineConfig."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        provider: Optional[Provider] = None,
        store: Optional[StateStore] = None,
    ):
        self.config = config or EngineConfig()
        self.provider = provider or get_provider(self.config.provider.name, **self.config.provider.options)
        self.store = store if store is not None else StateStore(Path(self.config.state.path))

    def planner(self) -> Planner:
        ex = self.config.executor
        return Planner(
            self.provider,
            self.store,
            max_attempts=ex.max_attempts,
            base_delay=ex.base_delay,
            max_delay=ex.max_delay,
        )

    def executor(self, parallelism: Optional[int] = None) -> Executor:
        ex = self.config.executor
        return Executor(
            self.provider,
            self.store,
            max_attempts=ex.max_attempts,
            base_delay=ex.base_delay,
            max_delay=ex.max_delay,
            parallelism=parallelism or ex.parallelism,
        )

    def plan_document(
        self,
        document: Dict[str, Any],
        refresh: Optional[bool] = None,
        destroy: bool = False
    ) -> Plan:
        """Plan from an already parsed desired-state document."""
        desired = DesiredState() if destroy else parse_desired_state(document)
        if refresh is None:
            refresh = self.config.plan.refresh
        return self.planner().plan(
            desired,
            refresh=refresh,
            destroy=destroy,
            desired_hash=None if destroy else document_hash(document),
        )

    def plan_file(
        self,
        desired_path: Union[str, Path],
        refresh: Optional[bool] = None,
        destroy: bool = False
    ) -> Plan:
        """Plan from a desired-state file (YAML or JSON)."""
        document = {} if destroy else read_document(desired_path)
        if not destroy:
            logger.info(f"Planning from {desired_path}")
        return self.plan_document(document, refresh=refresh, destroy=destroy)

    def apply(self, plan: Plan, parallelism: Optional[int] = None) -> ApplyResult:
        """
        Apply a plan.

        Raises:
            StateConflict: If the state changed since the plan was computed
        """
        ensure_plan_current(plan, self.store)
        return self.executor(parallelism).apply(plan)
