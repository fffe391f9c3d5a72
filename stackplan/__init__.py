"""Declarative resource dependency resolver and apply-order planner."""

from stackplan.errors import (
    CycleError,
    DeclarationError,
    DuplicateNameError,
    GraphError,
    InvalidNameError,
    PlanMismatchError,
    ProviderError,
    ProviderTimeoutError,
    StackPlanError,
    UnknownReferenceError,
    UnresolvedReferenceError,
)
from stackplan.executor import execute, execute_concurrent
from stackplan.graph_builder import build, validate_specs
from stackplan.models import (
    ApplyPlan,
    ExecutionReport,
    InputRef,
    ReportEntry,
    ResourceGraph,
    ResourceSpec,
    ResourceState,
    ResourceStatus,
    RunStatus,
)
from stackplan.planner import plan
from stackplan.propagator import resolve_inputs
from stackplan.registry import ProvisionerRegistry

__version__ = "0.1.0"

__all__ = [
    "ApplyPlan",
    "CycleError",
    "DeclarationError",
    "DuplicateNameError",
    "ExecutionReport",
    "GraphError",
    "InputRef",
    "InvalidNameError",
    "PlanMismatchError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProvisionerRegistry",
    "ReportEntry",
    "ResourceGraph",
    "ResourceSpec",
    "ResourceState",
    "ResourceStatus",
    "RunStatus",
    "StackPlanError",
    "UnknownReferenceError",
    "UnresolvedReferenceError",
    "build",
    "execute",
    "execute_concurrent",
    "plan",
    "resolve_inputs",
    "validate_specs",
]
