"""
Plan Executor Module

Responsibility:
- Walk an ApplyPlan and call the provisioner callback for each resource
- Own all ResourceState transitions: Pending -> Applying -> Applied | Failed
- Stop at the first failure (fail-fast) and report partial progress
- Optionally apply independent resources of one layer in parallel

Provisioner callback contract:
    apply(name, config) -> mapping of output key to value
    raising ProviderError(message, retryable) on failure

No retries and no rollback happen here. A caller can re-run with `prior`
set to an earlier report to skip everything that already reached Applied.
"""

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from stackplan import planner
from stackplan.config import get_apply_timeout, get_max_workers
from stackplan.errors import (
    PlanMismatchError,
    ProviderError,
    ProviderTimeoutError,
    UnresolvedReferenceError,
)
from stackplan.models import (
    ApplyPlan,
    ExecutionReport,
    ReportEntry,
    ResourceGraph,
    ResourceSpec,
    ResourceStatus,
    RunStatus,
)
from stackplan.propagator import StateStore, resolve_inputs

logger = logging.getLogger(__name__)

ApplyCallback = Callable[[str, Dict[str, Any]], Mapping]

_DEFAULT = object()


def execute(plan: ApplyPlan, graph: ResourceGraph, apply: ApplyCallback, *,
            timeout=_DEFAULT, prior: Optional[ExecutionReport] = None) -> ExecutionReport:
    """
    Apply every resource in plan order, one at a time.

    Args:
        plan: Apply order produced by planner.plan()
        graph: Graph the plan was computed from
        apply: Provisioner callback
        timeout: Seconds allowed per callback; defaults to STACKPLAN_APPLY_TIMEOUT
        prior: Earlier report whose Applied resources are reused, not re-applied

    Returns:
        ExecutionReport with an entry for every resource reached
    """
    if timeout is _DEFAULT:
        timeout = get_apply_timeout()

    mismatch = _check_plan(plan, graph)
    if mismatch is not None:
        return _reject(mismatch)

    states = StateStore(plan)
    carried = _seed(states, graph, prior)
    report = ExecutionReport(status=RunStatus.RUNNING)

    logger.info("Executing plan of %d resources (%d already applied)", len(plan), len(carried))

    for name in plan:
        if name in carried:
            report.entries.append(carried[name])
            continue

        entry = _apply_one(graph.specs[name], states, apply, timeout)
        report.entries.append(entry)

        if entry.status == ResourceStatus.FAILED:
            return _abort(report, entry)

    report.status = RunStatus.COMPLETED
    logger.info("Plan completed: %d resources applied", len(report.applied()))
    return report


def execute_concurrent(graph: ResourceGraph, apply: ApplyCallback, *,
                       plan: Optional[ApplyPlan] = None, max_workers: Optional[int] = None,
                       timeout=_DEFAULT, prior: Optional[ExecutionReport] = None) -> ExecutionReport:
    """
    Apply the plan layer by layer, running each layer's resources in parallel.

    A failure lets the rest of its layer finish, then no later layer starts.
    Report entries follow plan order. A plan without layers (or whose layers
    do not cover its names) is regrouped from the graph.
    """
    if timeout is _DEFAULT:
        timeout = get_apply_timeout()
    if plan is None:
        plan = planner.plan(graph)
    if max_workers is None:
        max_workers = get_max_workers()

    mismatch = _check_plan(plan, graph)
    if mismatch is not None:
        return _reject(mismatch)

    layers = plan.layers
    if {name for layer in layers for name in layer} != set(plan.names):
        layers = planner.layers(graph, plan.names)

    states = StateStore(plan)
    carried = _seed(states, graph, prior)
    reached: Dict[str, ReportEntry] = {}
    first_failure: Optional[ReportEntry] = None

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stackplan") as pool:
        for depth, layer in enumerate(layers):
            logger.info("Applying layer %d: %s", depth, ", ".join(layer))
            futures = {
                name: pool.submit(_apply_one, graph.specs[name], states, apply, timeout)
                for name in layer if name not in carried
            }
            for name in layer:
                reached[name] = carried[name] if name in carried else futures[name].result()

            failed = [reached[name] for name in layer if reached[name].status == ResourceStatus.FAILED]
            if failed:
                first_failure = failed[0]
                break

    report = ExecutionReport(
        status=RunStatus.RUNNING,
        entries=[reached[name] for name in plan if name in reached],
    )
    if first_failure is not None:
        return _abort(report, first_failure)

    report.status = RunStatus.COMPLETED
    return report


def _check_plan(plan: ApplyPlan, graph: ResourceGraph) -> Optional[PlanMismatchError]:
    """Every plan name must be a graph resource, listed once."""
    unknown, repeated, seen = [], [], set()
    for name in plan:
        if name not in graph:
            unknown.append(name)
        elif name in seen:
            repeated.append(name)
        seen.add(name)

    if unknown or repeated:
        return PlanMismatchError(unknown, repeated)
    return None


def _reject(error: PlanMismatchError) -> ExecutionReport:
    logger.error("Refusing to execute: %s", error)
    return ExecutionReport(status=RunStatus.ABORTED, error=error)


def _seed(states: StateStore, graph: ResourceGraph,
          prior: Optional[ExecutionReport]) -> Dict[str, ReportEntry]:
    """Mark resources Applied in a prior run as Applied here too."""
    carried: Dict[str, ReportEntry] = {}
    if prior is None:
        return carried

    for entry in prior.entries:
        if entry.status != ResourceStatus.APPLIED or entry.name not in graph or entry.name in carried:
            continue
        states.transition(entry.name, ResourceStatus.APPLIED, outputs=entry.outputs)
        carried[entry.name] = ReportEntry(entry.name, ResourceStatus.APPLIED, dict(entry.outputs))
        logger.info("Reusing outputs of %s from prior run", entry.name)

    return carried


def _apply_one(spec: ResourceSpec, states: StateStore, apply: ApplyCallback,
               timeout: Optional[float]) -> ReportEntry:
    """Drive one resource through Applying to Applied or Failed. Never raises."""
    name = spec.name
    states.transition(name, ResourceStatus.APPLYING)
    logger.info("Applying %s", name)

    try:
        config = resolve_inputs(spec, states)
        outputs = _check_outputs(spec, _invoke(apply, name, config, timeout))
    except UnresolvedReferenceError as e:
        logger.critical("Apply order violated for %s: %s", name, e)
        states.transition(name, ResourceStatus.FAILED, error=e)
        return ReportEntry(name, ResourceStatus.FAILED, error=e)
    except ProviderError as e:
        logger.warning("Provisioning %s failed (retryable=%s): %s", name, e.retryable, e)
        states.transition(name, ResourceStatus.FAILED, error=e)
        return ReportEntry(name, ResourceStatus.FAILED, error=e)
    except Exception as e:
        logger.exception("Provisioner for %s raised unexpectedly", name)
        wrapped = ProviderError(f"{type(e).__name__}: {e}", retryable=False)
        wrapped.__cause__ = e
        states.transition(name, ResourceStatus.FAILED, error=wrapped)
        return ReportEntry(name, ResourceStatus.FAILED, error=wrapped)

    states.transition(name, ResourceStatus.APPLIED, outputs=outputs)
    logger.info("Applied %s", name)
    return ReportEntry(name, ResourceStatus.APPLIED, outputs=dict(outputs))


def _invoke(apply: ApplyCallback, name: str, config: dict, timeout: Optional[float]):
    """Call the provisioner, bounded by `timeout` seconds when set."""
    if timeout is None:
        return apply(name, config)

    result = {}

    def target():
        try:
            result["value"] = apply(name, config)
        except BaseException as e:
            result["error"] = e

    worker = threading.Thread(target=target, name=f"apply-{name}", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise ProviderTimeoutError(name, timeout)
    if "error" in result:
        raise result["error"]
    return result["value"]


def _check_outputs(spec: ResourceSpec, outputs) -> dict:
    if not isinstance(outputs, Mapping):
        raise ProviderError(
            f"Provisioner for '{spec.name}' returned {type(outputs).__name__}, expected a mapping"
        )

    missing = [key for key in spec.outputs if key not in outputs]
    if missing:
        raise ProviderError(f"Provisioner for '{spec.name}' did not produce outputs {missing}")

    return dict(outputs)


def _abort(report: ExecutionReport, failure: ReportEntry) -> ExecutionReport:
    report.status = RunStatus.ABORTED
    report.error = failure.error
    logger.error("Run aborted at %s: %s", failure.name, failure.error)
    return report
