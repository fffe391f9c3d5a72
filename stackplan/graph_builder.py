"""
Resource Graph Builder Module

Responsibility:
- Turn an ordered sequence of ResourceSpec into a ResourceGraph
- Reject duplicate resource names and names that are empty or contain '.'
- Reject references to undeclared resources or undeclared output keys
- Derive dependency edges from input references and config expressions

This is PURE deterministic validation logic.
Nothing is provisioned and no partial graph is ever returned.
"""

from typing import Iterable, List

from stackplan.errors import DuplicateNameError, GraphError, InvalidNameError, UnknownReferenceError
from stackplan.models import InputRef, ResourceGraph, ResourceSpec


def validate_specs(specs: Iterable[ResourceSpec]) -> List[GraphError]:
    """
    Validate declarations without building the graph.

    Returns every problem found, in declaration order. An empty list means
    build() will succeed.
    """
    specs = list(specs)
    problems: List[GraphError] = []

    declared = {}
    for spec in specs:
        if not spec.name.strip() or "." in spec.name:
            problems.append(InvalidNameError(spec.name))
            continue
        if spec.name in declared:
            problems.append(DuplicateNameError(spec.name))
            continue
        declared[spec.name] = spec

    for spec in declared.values():
        for text in spec.reference_texts():
            problem = _check_reference(spec, text, declared)
            if problem:
                problems.append(problem)

    return problems


def build(specs: Iterable[ResourceSpec]) -> ResourceGraph:
    """
    Build the resource graph.

    Raises the first InvalidNameError, DuplicateNameError or UnknownReferenceError found.
    """
    specs = list(specs)
    problems = validate_specs(specs)
    if problems:
        raise problems[0]

    graph = ResourceGraph()
    for index, spec in enumerate(specs):
        graph.specs[spec.name] = spec
        graph.order[spec.name] = index

    for spec in specs:
        deps = []
        for ref in spec.references():
            if ref.resource not in deps:
                deps.append(ref.resource)
        graph.edges[spec.name] = tuple(deps)

    return graph


def _check_reference(spec: ResourceSpec, text: str, declared: dict):
    """Return an UnknownReferenceError for a bad reference, or None."""
    try:
        ref = InputRef.parse(text)
    except ValueError as e:
        return UnknownReferenceError(spec.name, str(text), reason=str(e))

    target = declared.get(ref.resource)
    if target is None:
        return UnknownReferenceError(
            spec.name, str(ref), reason=f"resource '{ref.resource}' is not declared"
        )

    if ref.output not in target.outputs:
        return UnknownReferenceError(
            spec.name, str(ref),
            reason=f"'{ref.resource}' declares outputs {list(target.outputs)}"
        )

    return None
