"""
Core Domain Models Module

Responsibility:
- Define core domain classes for the resource graph
- ResourceSpec: a single declared resource (inputs, outputs, provisioner, config)
- ResourceGraph: all declared resources plus dependency edges
- ApplyPlan: the validated order in which resources are applied
- ResourceState / ExecutionReport: per-run state owned by the plan executor

Variable expressions look like ${{ storage.bucket_arn }} and may appear
anywhere inside a resource's config payload.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple

EXPRESSION_PATTERN = re.compile(r"\$\{\{\s*([^{}\s]+?)\s*\}\}")


@dataclass(frozen=True)
class InputRef:
    """Pointer to another resource's output, written as <resource>.<output>."""
    resource: str
    output: str

    @classmethod
    def parse(cls, text: str) -> "InputRef":
        resource, sep, output = str(text).strip().partition(".")
        if not sep or not resource or not output:
            raise ValueError(f"Invalid reference '{text}': expected '<resource>.<output>'")
        return cls(resource=resource, output=output)

    def __str__(self) -> str:
        return f"{self.resource}.{self.output}"


@dataclass(frozen=True)
class ResourceSpec:
    """
    Represents a single declared resource.

    Immutable once registered. The config payload is opaque to the planner;
    only the provisioner behind `provisioner` knows what it means.
    """
    name: str
    provisioner: str = ""

    # Local input name -> "<resource>.<output>"
    inputs: Mapping[str, str] = field(default_factory=dict)

    # Output keys this resource promises to produce once applied
    outputs: Tuple[str, ...] = ()

    # Provider-specific payload, may embed ${{ resource.output }} expressions
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Stored as read-only copies of whatever the caller passed
        object.__setattr__(self, "inputs", MappingProxyType(dict(self.inputs)))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "config", freeze(self.config))

    def __hash__(self) -> int:
        return hash((self.name, self.provisioner, self.outputs))

    def reference_texts(self) -> List[str]:
        """Raw reference strings: the inputs mapping first, then config expressions."""
        return list(self.inputs.values()) + find_expressions(self.config)

    def references(self) -> List[InputRef]:
        """Every reference this resource consumes, in declaration order, without repeats."""
        seen = []
        for text in self.reference_texts():
            ref = InputRef.parse(text)
            if ref not in seen:
                seen.append(ref)
        return seen


def find_expressions(value: Any) -> List[str]:
    """Collect the bodies of ${{ ... }} expressions from a nested payload."""
    found = []
    if isinstance(value, str):
        found.extend(EXPRESSION_PATTERN.findall(value))
    elif isinstance(value, Mapping):
        for item in value.values():
            found.extend(find_expressions(item))
    elif isinstance(value, (list, tuple)):
        for item in value:
            found.extend(find_expressions(item))
    return found


def freeze(value: Any) -> Any:
    """Read-only copy of a nested payload: mappings become mappingproxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of a frozen payload."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


@dataclass
class ResourceGraph:
    """
    Declared resources keyed by name, plus the edges derived from their references.

    `edges[name]` lists the resources `name` depends on.
    """
    specs: Dict[str, ResourceSpec] = field(default_factory=dict)
    order: Dict[str, int] = field(default_factory=dict)
    edges: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def __contains__(self, name: str) -> bool:
        return name in self.specs

    def __len__(self) -> int:
        return len(self.specs)

    def __iter__(self) -> Iterator[str]:
        return iter(self.specs)

    def dependencies(self, name: str) -> Tuple[str, ...]:
        return self.edges.get(name, ())

    def dependents(self, name: str) -> List[str]:
        return [other for other, deps in self.edges.items() if name in deps]


@dataclass(frozen=True)
class ApplyPlan:
    """Ordered resource names; every resource appears after everything it references."""
    names: Tuple[str, ...] = ()
    layers: Tuple[Tuple[str, ...], ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def index(self, name: str) -> int:
        return self.names.index(name)


class ResourceStatus(str, Enum):
    PENDING = "Pending"
    APPLYING = "Applying"
    APPLIED = "Applied"
    FAILED = "Failed"


class RunStatus(str, Enum):
    RUNNING = "Running"
    COMPLETED = "Completed"
    ABORTED = "Aborted"


@dataclass
class ResourceState:
    status: ResourceStatus = ResourceStatus.PENDING
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None


@dataclass(frozen=True)
class ReportEntry:
    name: str
    status: ResourceStatus
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None


@dataclass
class ExecutionReport:
    """
    Outcome of one run.

    Holds an entry for every resource the executor reached, in plan order.
    Resources never reached are absent.
    """
    status: RunStatus = RunStatus.RUNNING
    entries: List[ReportEntry] = field(default_factory=list)

    # The error that aborted the run, if any
    error: Optional[Exception] = None

    def entry(self, name: str) -> Optional[ReportEntry]:
        return next((e for e in self.entries if e.name == name), None)

    def applied(self) -> List[str]:
        return [e.name for e in self.entries if e.status == ResourceStatus.APPLIED]

    def failed(self) -> List[str]:
        return [e.name for e in self.entries if e.status == ResourceStatus.FAILED]

    def outputs_for(self, name: str) -> Dict[str, Any]:
        entry = self.entry(name)
        return dict(entry.outputs) if entry else {}

    def as_dict(self) -> dict:
        """Plain-data view used by the YAML renderer and the API."""
        resources = []
        for e in self.entries:
            item = {"name": e.name, "status": e.status.value}
            if e.status == ResourceStatus.APPLIED:
                item["outputs"] = dict(e.outputs)
            if e.error is not None:
                item["error"] = str(e.error)
                item["retryable"] = bool(getattr(e.error, "retryable", False))
            resources.append(item)
        data = {"status": self.status.value, "resources": resources}
        if self.error is not None:
            data["error"] = str(self.error)
        return data
