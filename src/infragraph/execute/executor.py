"""Executor: run ordered steps against a provider, in parallel where the graph allows."""

import asyncio
import heapq
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple
import networkx as nx
from ..graph.dependency_graph import DependencyGraph
from ..model.resources import Resource
from ..model.values import Reference, resolve
from ..plan.models import ActionKind, Plan, PlannedAction
from ..providers.base import Provider
from ..resolve.order import ExecutionOrder, ExecutionStep, StepKind
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import ActionFailed, ResourceNotFound, RunCancelled
from ..utils.logging import get_logger
from .cancellation import CancellationToken
from .results import ApplyReport, ResourceResult, ResourceStatus, StepResult, StepStatus
from .retry import RetryPolicy, call_with_retry

logger = get_logger("execute.executor")


class Executor:
    """
    Dispatches steps whose predecessors have all succeeded, up to
    ``concurrency`` at a time.

    A step's state record is written before its successors become ready.
    When a step fails for good, every step reachable from it in the step
    graph is blocked; unrelated branches keep running.
    """

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        graph: DependencyGraph,
        plan: Plan,
        concurrency: int = 10,
        retry_policy: Optional[RetryPolicy] = None,
        token: Optional[CancellationToken] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.provider = provider
        self.store = store
        self.graph = graph
        self.plan = plan
        self.concurrency = concurrency
        self.policy = retry_policy or RetryPolicy()
        self.token = token or CancellationToken()
        self.actions: Dict[str, PlannedAction] = {action.address: action for action in plan.actions}
        self._seq = 0

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    async def run(self, order: ExecutionOrder) -> ApplyReport:
        """Execute every step of the order and report each resource's terminal status."""
        await self._record_unchanged()
        steps = {step.id: step for step in order.steps}
        step_graph = order.to_graph()
        results = {
            step.id: StepResult(step_id=step.id, address=step.address, kind=step.kind)
            for step in order.steps
        }
        waiting = {step.id: set(step.predecessors) for step in order.steps}
        ready: List[Tuple[int, str]] = [(step.position, step.id) for step in order.steps if not step.predecessors]
        heapq.heapify(ready)
        running: Dict[asyncio.Task, str] = {}
        cancel_waiter = asyncio.ensure_future(self.token.wait())

        logger.info(f"Executing {len(steps)} steps with concurrency {self.concurrency}")
        try:
            while ready or running:
                while ready and len(running) < self.concurrency and not self.token.cancelled:
                    _, sid = heapq.heappop(ready)
                    if results[sid].status != StepStatus.PENDING:
                        continue
                    results[sid].started_seq = self._next_seq()
                    logger.debug(f"{sid}: dispatched")
                    running[asyncio.ensure_future(self._run_step(steps[sid]))] = sid

                if not running:
                    break

                done, _ = await asyncio.wait(
                    set(running) | {cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for task in done:
                    if task is cancel_waiter:
                        continue
                    sid = running.pop(task)
                    if self._record_outcome(task, results[sid]):
                        for successor in step_graph.successors(sid):
                            waiting[successor].discard(sid)
                            if not waiting[successor] and results[successor].status == StepStatus.PENDING:
                                heapq.heappush(ready, (steps[successor].position, successor))
                    elif results[sid].status == StepStatus.FAILED:
                        self._block_descendants(step_graph, sid, results)

                if self.token.cancelled and running:
                    logger.warning(f"Run cancelled ({self.token.reason}); aborting {len(running)} in-flight steps")
                    for task in running:
                        task.cancel()
                    await asyncio.gather(*running, return_exceptions=True)
                    for task, sid in running.items():
                        results[sid].status = StepStatus.CANCELLED
                        results[sid].finished_seq = self._next_seq()
                    running.clear()
        finally:
            cancel_waiter.cancel()

        if self.token.cancelled:
            for result in results.values():
                if result.status == StepStatus.PENDING:
                    result.status = StepStatus.CANCELLED

        return self._report(order, results)

    def _record_outcome(self, task: asyncio.Task, result: StepResult) -> bool:
        """Store a finished task's outcome; True if the step succeeded."""
        result.finished_seq = self._next_seq()
        try:
            result.attempts = task.result()
        except ActionFailed as e:
            result.status = StepStatus.FAILED
            result.attempts = e.attempts
            result.error = str(e.cause) if e.cause is not None else str(e)
            logger.error(f"{result.step_id}: failed: {result.error}")
            return False
        except (RunCancelled, asyncio.CancelledError):
            result.status = StepStatus.CANCELLED
            return False
        except Exception as e:
            result.status = StepStatus.FAILED
            result.error = str(e)
            logger.error(f"{result.step_id}: unexpected error: {e}", exc_info=True)
            return False
        result.status = StepStatus.SUCCEEDED
        logger.info(f"{result.step_id}: complete after {result.attempts} attempt(s)")
        return True

    def _block_descendants(self, step_graph, failed: str, results: Dict[str, StepResult]) -> None:
        for descendant in nx.descendants(step_graph, failed):
            result = results[descendant]
            if result.status == StepStatus.PENDING:
                result.status = StepStatus.BLOCKED
                result.blocked_by = failed
                logger.warning(f"{descendant}: blocked by {failed}")

    async def _record_unchanged(self) -> None:
        """Carry the declared lifecycle and dependencies of unchanged resources into state."""
        for action in self.plan.actions:
            if action.kind != ActionKind.NO_OP:
                continue
            resource = self.graph.get_resource(action.address)
            record = self.store.get(action.address)
            if resource is None or record is None:
                continue
            dependencies = self._recorded_dependencies(resource)
            if record.lifecycle == resource.lifecycle and record.dependencies == dependencies:
                continue

            def change(current: Optional[StateRecord], declared: Resource = resource,
                       deps: List[str] = dependencies) -> Optional[StateRecord]:
                if current is None:
                    return None
                return current.model_copy(update={"lifecycle": declared.lifecycle, "dependencies": deps})

            await self.store.mutate(action.address, change)
            logger.info(f"{action.address}: recorded current lifecycle and dependencies")

    async def _run_step(self, step: ExecutionStep) -> int:
        """Run one step; returns the provider attempts used."""
        if self.token.cancelled:
            raise RunCancelled(f"{step.id} not started: run cancelled")
        action = self.actions[step.address]
        if step.kind == StepKind.CREATE:
            return await self._create(step, action)
        if step.kind == StepKind.UPDATE:
            return await self._update(step, action)
        if step.kind == StepKind.DESTROY:
            return await self._destroy(step)
        if step.kind == StepKind.DESTROY_DEPOSED:
            return await self._destroy_deposed(step)
        raise ValueError(f"Unknown step kind: {step.kind}")

    def _declared(self, step: ExecutionStep) -> Resource:
        resource = self.graph.get_resource(step.address)
        if resource is None:
            raise ActionFailed(step.id, LookupError(f"{step.address} is not declared"))
        return resource

    def _resolve_live(self, step: ExecutionStep, resource: Resource) -> Dict[str, Any]:
        """Resolve references against the exports of already-applied dependencies."""
        def lookup(ref: Reference) -> Any:
            record = self.store.get(ref.address)
            if record is not None:
                if ref.attribute in record.exports:
                    return record.exports[ref.attribute]
                if ref.attribute in record.attributes:
                    return record.attributes[ref.attribute]
            raise ActionFailed(step.id, LookupError(f"{ref} has no value"))

        return {name: resolve(value, lookup) for name, value in resource.attributes.items()}

    @staticmethod
    def _recorded_dependencies(resource: Resource) -> List[str]:
        return sorted(resource.implicit_dependencies() | set(resource.depends_on))

    async def _create(self, step: ExecutionStep, action: PlannedAction) -> int:
        resource = self._declared(step)
        attributes = self._resolve_live(step, resource)
        (provider_id, exports), attempts = await call_with_retry(
            step.id,
            lambda: self.provider.create(resource.type, attributes),
            self.policy,
            self.token,
        )

        def change(current: Optional[StateRecord]) -> StateRecord:
            deposed = list(current.deposed) if current is not None else []
            if current is not None and action.kind == ActionKind.REPLACE:
                deposed.append(current.provider_id)
            return StateRecord(
                type=resource.type,
                name=resource.name,
                provider_id=provider_id,
                attributes=attributes,
                exports={**exports, "id": provider_id},
                dependencies=self._recorded_dependencies(resource),
                lifecycle=resource.lifecycle,
                deposed=deposed,
            )

        await self.store.mutate(step.address, change)
        return attempts

    async def _update(self, step: ExecutionStep, action: PlannedAction) -> int:
        resource = self._declared(step)
        record = self.store.get(step.address)
        if record is None:
            raise ActionFailed(step.id, LookupError(f"{step.address} is not in state"))
        attributes = self._resolve_live(step, resource)
        changes = {change.name: attributes.get(change.name) for change in action.changes}
        exports, attempts = await call_with_retry(
            step.id,
            lambda: self.provider.update(resource.type, record.provider_id, changes),
            self.policy,
            self.token,
        )

        def change(current: Optional[StateRecord]) -> StateRecord:
            base = current or record
            updated = dict(base.attributes)
            for name, value in changes.items():
                if value is None:
                    updated.pop(name, None)
                else:
                    updated[name] = value
            return base.model_copy(update={
                "attributes": updated,
                "exports": {**exports, "id": base.provider_id},
                "dependencies": self._recorded_dependencies(resource),
                "lifecycle": resource.lifecycle,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })

        await self.store.mutate(step.address, change)
        return attempts

    async def _destroy_one(self, step: ExecutionStep, resource_type: str, provider_id: str) -> int:
        async def destroy() -> None:
            try:
                await self.provider.destroy(resource_type, provider_id)
            except ResourceNotFound:
                logger.info(f"{step.address}: {provider_id} already gone")

        _, attempts = await call_with_retry(step.id, destroy, self.policy, self.token)
        return attempts

    async def _destroy_deposed(self, step: ExecutionStep) -> int:
        record = self.store.get(step.address)
        attempts = 0
        for provider_id in list(record.deposed) if record else []:
            attempts += await self._destroy_one(step, record.type, provider_id)

            def change(current: Optional[StateRecord], gone: str = provider_id) -> Optional[StateRecord]:
                if current is None:
                    return None
                return current.model_copy(update={"deposed": [d for d in current.deposed if d != gone]})

            await self.store.mutate(step.address, change)
        return attempts

    async def _destroy(self, step: ExecutionStep) -> int:
        record = self.store.get(step.address)
        if record is None:
            logger.info(f"{step.address}: nothing to destroy")
            return 0
        attempts = await self._destroy_deposed(step)
        attempts += await self._destroy_one(step, record.type, record.provider_id)
        await self.store.remove(step.address)
        return attempts

    def _leaves_dependents_stale(self, result: StepResult) -> bool:
        if result.kind in (StepKind.CREATE, StepKind.UPDATE):
            return True
        return result.kind == StepKind.DESTROY and self.actions[result.address].kind == ActionKind.REPLACE

    def _report(self, order: ExecutionOrder, results: Dict[str, StepResult]) -> ApplyReport:
        by_address: Dict[str, List[StepResult]] = {}
        for step in order.steps:
            by_address.setdefault(step.address, []).append(results[step.id])

        # Unchanged resources that rely on a resource whose create/update failed,
        # or whose old instance could not be removed ahead of its replacement,
        # are not converged either.
        blocked_downstream: Dict[str, str] = {}
        for result in results.values():
            if result.status == StepStatus.FAILED and self._leaves_dependents_stale(result):
                for address in self.graph.get_downstream_resources(result.address):
                    blocked_downstream.setdefault(address, result.step_id)

        resources = []
        for action in self.plan.actions:
            step_results = by_address.get(action.address, [])
            statuses: Set[StepStatus] = {r.status for r in step_results}
            entry = ResourceResult(address=action.address, action=action.kind, status=ResourceStatus.APPLIED)
            if not step_results:
                if action.address in blocked_downstream:
                    entry.status = ResourceStatus.BLOCKED
                    entry.blocked_by = blocked_downstream[action.address]
                else:
                    entry.status = ResourceStatus.NO_OP
            elif StepStatus.FAILED in statuses:
                entry.status = ResourceStatus.FAILED
                entry.error = next(r.error for r in step_results if r.status == StepStatus.FAILED)
            elif StepStatus.BLOCKED in statuses:
                entry.status = ResourceStatus.BLOCKED
                entry.blocked_by = next(r.blocked_by for r in step_results if r.status == StepStatus.BLOCKED)
            elif statuses & {StepStatus.CANCELLED, StepStatus.PENDING}:
                entry.status = ResourceStatus.CANCELLED
            resources.append(entry)

        report = ApplyReport(
            resources=resources,
            steps=[results[step.id] for step in order.steps],
            cancelled=self.token.cancelled,
        )
        logger.info(
            f"Run finished: {len(report.applied)} applied, {len(report.failed)} failed, "
            f"{len(report.blocked)} blocked"
        )
        return report
