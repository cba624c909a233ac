"""Engine: wires declarations, state, planner, resolver and executor into one run."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from .config.settings import EngineSettings
from .execute.cancellation import CancellationToken
from .execute.executor import Executor
from .execute.results import ApplyReport
from .execute.retry import RetryPolicy
from .graph.dependency_graph import DependencyGraph
from .model.resources import Resource
from .plan.models import DriftEntry, Plan
from .plan.planner import generate_plan
from .plan.refresh import refresh_state
from .providers.base import Provider
from .providers.local import LocalProvider
from .providers.registry import ResourceTypeRegistry, default_registry
from .resolve.order import ExecutionOrder, resolve_order
from .state.backends import LocalStateBackend, StateBackend
from .state.models import StateRecord
from .state.store import open_state
from .utils.logging import get_logger

logger = get_logger("engine")


@dataclass
class PlanResult:
    """A validated plan together with the graph and step order it was built from."""
    plan: Plan
    graph: DependencyGraph
    order: ExecutionOrder


@dataclass
class ApplyResult:
    plan: Plan
    order: ExecutionOrder
    report: ApplyReport

    @property
    def exit_code(self) -> int:
        return self.report.exit_code


class Engine:
    """
    One provisioning engine bound to a provider and a state backend.

    ``plan`` never mutates anything. ``apply`` validates the whole plan
    (graph, references, cycles, prevent_destroy, step order) before the
    first provider call, then executes it and records results in state as
    each step completes.
    """

    def __init__(
        self,
        provider: Provider,
        state_backend: StateBackend,
        registry: Optional[ResourceTypeRegistry] = None,
        settings: Optional[EngineSettings] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.provider = provider
        self.state_backend = state_backend
        self.registry = registry or default_registry()
        self.settings = settings or EngineSettings()
        self.token = token or CancellationToken()

    @property
    def retry_policy(self) -> RetryPolicy:
        retry = self.settings.executor.retry
        return RetryPolicy(
            max_attempts=retry.max_attempts,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
            multiplier=retry.multiplier,
        )

    def _should_refresh(self, refresh: Optional[bool]) -> bool:
        return self.settings.plan.refresh if refresh is None else refresh

    async def _refresh(
        self,
        records: Dict[str, StateRecord],
        refresh: Optional[bool],
    ) -> Tuple[Dict[str, StateRecord], List[DriftEntry]]:
        if not records or not self._should_refresh(refresh):
            return records, []
        return await refresh_state(
            records,
            self.provider,
            self.retry_policy,
            concurrency=self.settings.executor.concurrency,
            token=self.token,
        )

    def _build(
        self,
        resources: Sequence[Resource],
        records: Dict[str, StateRecord],
        destroy: bool,
        drift: List[DriftEntry],
    ) -> PlanResult:
        graph = DependencyGraph()
        declared = None
        if destroy:
            # teardown follows the dependencies recorded at apply time; the
            # declarations only supply the current lifecycle policy
            graph.build_from_resources([], records.values())
            declared = {resource.address: resource for resource in resources}
        else:
            graph.build_from_resources(resources, records.values())
        plan = generate_plan(graph, records, self.registry, destroy=destroy, drift=drift, declared=declared)
        order = resolve_order(graph, plan)
        return PlanResult(plan=plan, graph=graph, order=order)

    async def plan_async(
        self,
        resources: Sequence[Resource],
        destroy: bool = False,
        refresh: Optional[bool] = None,
    ) -> PlanResult:
        """
        Compute the plan for the given declarations without changing anything.

        Args:
            resources: Declared resources
            destroy: Plan removal of every tracked resource
            refresh: Read tracked resources back first (defaults to config)

        Raises:
            ValidationError: For cycles, dangling references or prevent_destroy
        """
        with open_state(self.state_backend, persist=False) as store:
            records, drift = await self._refresh(store.records(), refresh)
            return self._build(resources, records, destroy, drift)

    async def apply_async(
        self,
        resources: Sequence[Resource],
        destroy: bool = False,
        refresh: Optional[bool] = None,
    ) -> ApplyResult:
        """
        Plan, then converge infrastructure to the declarations.

        Returns:
            ApplyResult whose report enumerates every resource's terminal status

        Raises:
            ValidationError: Before any provider mutation
            StateError: If state cannot be loaded or saved
        """
        # every mutation below flushes itself; a rejected plan writes nothing
        with open_state(self.state_backend, persist=False) as store:
            records, drift = await self._refresh(store.records(), refresh)
            planned = self._build(resources, records, destroy, drift)
            if drift:
                store.replace_records(records)

            if not planned.plan.has_changes:
                logger.info("Nothing to apply")

            executor = Executor(
                self.provider,
                store,
                planned.graph,
                planned.plan,
                concurrency=self.settings.executor.concurrency,
                retry_policy=self.retry_policy,
                token=self.token,
            )
            report = await executor.run(planned.order)
            return ApplyResult(plan=planned.plan, order=planned.order, report=report)

    def plan(self, resources: Sequence[Resource], destroy: bool = False, refresh: Optional[bool] = None) -> PlanResult:
        return asyncio.run(self.plan_async(resources, destroy=destroy, refresh=refresh))

    def apply(self, resources: Sequence[Resource], destroy: bool = False, refresh: Optional[bool] = None) -> ApplyResult:
        return asyncio.run(self.apply_async(resources, destroy=destroy, refresh=refresh))


def build_engine(settings: EngineSettings, token: Optional[CancellationToken] = None) -> Engine:
    """Engine backed by the local provider and a local state file, as configured."""
    registry = default_registry()
    provider = LocalProvider(
        registry=registry,
        path=settings.provider.path,
        latency=settings.provider.latency,
    )
    return Engine(
        provider=provider,
        state_backend=LocalStateBackend(settings.state.path),
        registry=registry,
        settings=settings,
        token=token,
    )
