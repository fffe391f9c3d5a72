"""
Error Taxonomy Module

Responsibility:
- Declaration-time failures (duplicate or invalid names, unknown references, bad documents)
- Planning failures (dependency cycles)
- Execution failures (plan does not match the graph, ordering invariant violated)
- Provisioning failures reported by provisioner callbacks

Declaration and planning errors are raised before anything is applied.
Provider errors are recorded in the ExecutionReport instead of escaping.
"""

from typing import List, Optional


class StackPlanError(Exception):
    """Base class for every error raised by stackplan."""


class DeclarationError(StackPlanError):
    """A declaration document could not be parsed or failed schema validation."""


class GraphError(StackPlanError):
    """Base class for failures found while building the resource graph."""


class DuplicateNameError(GraphError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Resource '{name}' is declared more than once")


class InvalidNameError(GraphError):
    """Resource names must be non-empty and free of '.', which separates resource from output."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid resource name '{name}': must be non-empty and contain no '.'")


class UnknownReferenceError(GraphError):
    def __init__(self, resource: str, reference: str, reason: Optional[str] = None):
        self.resource = resource
        self.reference = reference
        message = f"Resource '{resource}' references unknown output '{reference}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CycleError(StackPlanError):
    def __init__(self, members: List[str]):
        self.members = list(members)
        chain = " -> ".join(self.members + self.members[:1])
        super().__init__(f"Dependency cycle detected: {chain}")


class UnresolvedReferenceError(StackPlanError):
    """
    An input could not be resolved at apply time.

    Only possible when the apply order does not respect dependencies, so it is
    always fatal for the run.
    """

    def __init__(self, resource: str, reference: str):
        self.resource = resource
        self.reference = reference
        super().__init__(f"Resource '{resource}' cannot resolve '{reference}': not applied yet")


class PlanMismatchError(StackPlanError):
    """An ApplyPlan names resources missing from the graph, or names one twice."""

    def __init__(self, unknown: List[str], repeated: List[str]):
        self.unknown = list(unknown)
        self.repeated = list(repeated)
        problems = []
        if self.unknown:
            problems.append(f"not in the graph: {self.unknown}")
        if self.repeated:
            problems.append(f"listed more than once: {self.repeated}")
        super().__init__(f"Plan does not match the graph ({'; '.join(problems)})")


class ProviderError(StackPlanError):
    """Raised by provisioner callbacks. `retryable` is advisory for the caller."""

    def __init__(self, message: str, retryable: bool = False):
        self.message = message
        self.retryable = retryable
        super().__init__(message)


class ProviderTimeoutError(ProviderError):
    def __init__(self, resource: str, timeout: float):
        self.resource = resource
        self.timeout = timeout
        super().__init__(f"Provisioning '{resource}' timed out after {timeout}s", retryable=True)
