"""
Cycle Detector & Topological Planner Module

Responsibility:
- Reject graphs where a resource (transitively) references itself
- Compute a deterministic apply order: every resource after its dependencies
- Group the order into dependency layers for concurrent execution

Ties are broken by declaration order, so identical input always yields an
identical plan.
"""

import heapq
import logging
from typing import Dict, List, Tuple

from stackplan.errors import CycleError
from stackplan.models import ApplyPlan, ResourceGraph

logger = logging.getLogger(__name__)

_VISITING = 1
_DONE = 2


def plan(graph: ResourceGraph) -> ApplyPlan:
    """
    Validate the graph is acyclic and compute the apply plan.

    Raises CycleError naming the cycle members in traversal order.
    """
    detect_cycle(graph)

    names = tuple(_ordered(graph))
    apply_plan = ApplyPlan(names=names, layers=layers(graph, names))
    logger.debug("Planned %d resources: %s", len(names), ", ".join(names))
    return apply_plan


def detect_cycle(graph: ResourceGraph) -> None:
    """
    Depth-first walk in declaration order, tracking the path being visited.

    Re-entering a node on the current path closes a cycle.
    """
    marks: Dict[str, int] = {}

    for root in graph:
        if root in marks:
            continue

        marks[root] = _VISITING
        path = [root]
        stack = [(root, iter(graph.dependencies(root)))]

        while stack:
            node, pending = stack[-1]
            dep = next(pending, None)

            if dep is None:
                stack.pop()
                path.pop()
                marks[node] = _DONE
                continue

            mark = marks.get(dep)
            if mark == _VISITING:
                members = path[path.index(dep):]
                logger.debug("Cycle found: %s", members)
                raise CycleError(members)
            if mark is None:
                marks[dep] = _VISITING
                path.append(dep)
                stack.append((dep, iter(graph.dependencies(dep))))


def _ordered(graph: ResourceGraph) -> List[str]:
    """Among resources whose dependencies are placed, always take the earliest declared."""
    remaining = {name: len(graph.dependencies(name)) for name in graph}
    dependents: Dict[str, List[str]] = {name: [] for name in graph}
    for name in graph:
        for dep in graph.dependencies(name):
            dependents[dep].append(name)

    ready = [(graph.order[name], name) for name, count in remaining.items() if count == 0]
    heapq.heapify(ready)

    ordered = []
    while ready:
        _, name = heapq.heappop(ready)
        ordered.append(name)
        for child in dependents[name]:
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(ready, (graph.order[child], child))

    if len(ordered) != len(graph):
        # detect_cycle() runs first, so this only trips if the graph was edited in between
        stuck = [name for name in graph if name not in ordered]
        raise CycleError(stuck)

    return ordered


def layers(graph: ResourceGraph, names=None) -> Tuple[Tuple[str, ...], ...]:
    """
    Group resources into layers of mutually independent resources.

    A resource's layer is one past the deepest of its dependencies, so every
    resource in a layer only needs outputs from earlier layers. When `names`
    is given, only those resources are grouped (in any order) and layers left
    empty are dropped.
    """
    if names is None:
        detect_cycle(graph)
        names = ordered = _ordered(graph)
    else:
        ordered = _ordered(graph)

    depth: Dict[str, int] = {}
    for name in ordered:
        deps = graph.dependencies(name)
        depth[name] = 1 + max((depth[d] for d in deps), default=-1)

    grouped: List[List[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
    for name in sorted(set(names), key=lambda n: graph.order[n]):
        grouped[depth[name]].append(name)

    return tuple(tuple(layer) for layer in grouped if layer)
