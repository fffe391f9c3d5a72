"""
Provisioner Registry Module

Responsibility:
- Map provisioner identifiers (e.g. "aws.s3_bucket") to callbacks
- Bind a ResourceGraph to a single apply(name, config) callback for the executor

Concrete provisioners live outside the core; this module only routes.
"""

import logging
from typing import Callable, Dict, List

from stackplan.models import ResourceGraph

logger = logging.getLogger(__name__)


class ProvisionerRegistry:
    """Lookup table from provisioner identifier to callback."""

    def __init__(self):
        self._callbacks: Dict[str, Callable] = {}

    def register(self, identifier: str, callback: Callable) -> None:
        if identifier in self._callbacks:
            raise ValueError(f"Provisioner '{identifier}' is already registered")
        self._callbacks[identifier] = callback

    def provisioner(self, identifier: str):
        """Decorator form of register()."""
        def decorator(callback):
            self.register(identifier, callback)
            return callback
        return decorator

    def get(self, identifier: str):
        return self._callbacks.get(identifier)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._callbacks

    def identifiers(self) -> List[str]:
        return list(self._callbacks)

    def bind(self, graph: ResourceGraph) -> Callable:
        """
        Return an apply callback that dispatches on each resource's provisioner.

        Fails with KeyError before anything is applied if any resource names an
        unregistered provisioner.
        """
        missing = [
            f"{name} ({spec.provisioner or '<none>'})"
            for name, spec in graph.specs.items()
            if spec.provisioner not in self._callbacks
        ]
        if missing:
            raise KeyError(f"No provisioner registered for: {', '.join(missing)}")

        routes = {name: self._callbacks[spec.provisioner] for name, spec in graph.specs.items()}

        def apply(name: str, config: dict):
            logger.debug("Dispatching %s to %s", name, graph.specs[name].provisioner)
            return routes[name](name, config)

        return apply
