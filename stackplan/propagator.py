"""
Value Propagator Module

Responsibility:
- Substitute applied outputs into a resource's inputs and config expressions
- Fail loudly when a referenced output is not available yet
- Hold per-resource run state behind per-resource locks

This is PURE deterministic logic. The ResourceSpec is never modified; every
resolved config is a fresh copy that lives only for one provisioning call.
"""

import copy
import logging
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional

from stackplan.errors import UnresolvedReferenceError
from stackplan.models import (
    EXPRESSION_PATTERN,
    InputRef,
    ResourceSpec,
    ResourceState,
    ResourceStatus,
)

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    ResourceStatus.PENDING: {ResourceStatus.APPLYING, ResourceStatus.APPLIED},
    ResourceStatus.APPLYING: {ResourceStatus.APPLIED, ResourceStatus.FAILED},
    ResourceStatus.APPLIED: set(),
    ResourceStatus.FAILED: set(),
}


def resolve_inputs(spec: ResourceSpec, states: Mapping[str, ResourceState]) -> Dict[str, Any]:
    """
    Build the provisioning payload for a resource.

    Returns a deep copy of spec.config where:
    - each name in spec.inputs is set to the referenced output value
    - a string that is exactly one ${{ r.k }} expression becomes the raw value
    - expressions embedded in longer strings are interpolated as text

    Raises UnresolvedReferenceError for the first reference whose resource is
    not Applied or lacks the output key.
    """
    values = {}
    for ref in spec.references():
        values[str(ref)] = _lookup(spec.name, ref, states)

    def lookup(body: str):
        return values[str(InputRef.parse(body))]

    resolved = _substitute(spec.config, lookup)
    for input_name, text in spec.inputs.items():
        resolved[input_name] = copy.deepcopy(lookup(text))

    return resolved


def _lookup(resource: str, ref: InputRef, states: Mapping[str, ResourceState]):
    state = states.get(ref.resource)
    if state is None or state.status != ResourceStatus.APPLIED or ref.output not in state.outputs:
        logger.error("Unresolved reference %s while resolving %s", ref, resource)
        raise UnresolvedReferenceError(resource, str(ref))
    return state.outputs[ref.output]


def _substitute(value: Any, lookup):
    """Recursively replace expressions, returning plain dicts and lists."""
    if isinstance(value, str):
        whole = EXPRESSION_PATTERN.fullmatch(value)
        if whole:
            return copy.deepcopy(lookup(whole.group(1)))
        return EXPRESSION_PATTERN.sub(lambda m: str(lookup(m.group(1))), value)

    if isinstance(value, Mapping):
        return {key: _substitute(item, lookup) for key, item in value.items()}

    if isinstance(value, (list, tuple)):
        return [_substitute(item, lookup) for item in value]

    return copy.deepcopy(value)


class StateStore(Mapping):
    """
    Run state for every resource, keyed by name.

    Each resource has its own lock. A transition holds that resource's lock
    for its whole duration; reads take the same lock and return a snapshot,
    so a dependent never observes half-written outputs.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._states: Dict[str, ResourceState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        for name in names:
            self._states[name] = ResourceState()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(name, threading.Lock())

    @contextmanager
    def _writing(self, name: str) -> Iterator[ResourceState]:
        with self._lock_for(name):
            state = self._states.setdefault(name, ResourceState())
            yield state

    def transition(self, name: str, status: ResourceStatus,
                   outputs: Optional[dict] = None, error: Optional[Exception] = None) -> None:
        with self._writing(name) as state:
            if status not in _TRANSITIONS[state.status]:
                raise ValueError(
                    f"Illegal transition for '{name}': {state.status.value} -> {status.value}"
                )
            state.status = status
            if outputs is not None:
                state.outputs = dict(outputs)
            state.error = error

    def __getitem__(self, name: str) -> ResourceState:
        if name not in self._states:
            raise KeyError(name)
        with self._lock_for(name):
            state = self._states[name]
            return ResourceState(status=state.status, outputs=dict(state.outputs), error=state.error)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._states))

    def __len__(self) -> int:
        return len(self._states)
