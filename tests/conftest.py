"""
Pytest configuration and shared fixtures for all tests.
"""

import threading

import pytest

from stackplan import graph_builder
from stackplan.declarations import load_declarations
from stackplan.demo_stack import DEMO_DECLARATIONS, FakeCloud
from stackplan.models import ResourceSpec


def spec(name, inputs=None, outputs=(), config=None, provisioner="fake"):
    """Shorthand for building a ResourceSpec in tests."""
    return ResourceSpec(
        name=name,
        provisioner=provisioner,
        inputs=dict(inputs or {}),
        outputs=tuple(outputs),
        config=dict(config or {}),
    )


class RecordingProvisioner:
    """
    Fake apply callback.

    Returns {key: "<name>-<key>"} for every declared output and records each
    call. Names in `fail` raise the given exception instead.
    """

    def __init__(self, graph, fail=None):
        self.graph = graph
        self.fail = dict(fail or {})
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, name, config):
        with self._lock:
            self.calls.append((name, config))
        if name in self.fail:
            raise self.fail[name]
        return {key: f"{name}-{key}" for key in self.graph.specs[name].outputs}

    @property
    def applied_names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def demo_specs():
    return load_declarations(DEMO_DECLARATIONS)


@pytest.fixture
def demo_graph(demo_specs):
    return graph_builder.build(demo_specs)


@pytest.fixture
def fake_cloud():
    return FakeCloud()


@pytest.fixture
def chain_specs():
    """a -> b -> c, each consuming the previous resource's single output."""
    return [
        spec("a", outputs=["id"]),
        spec("b", inputs={"parent": "a.id"}, outputs=["id"]),
        spec("c", inputs={"parent": "b.id"}, outputs=["id"]),
    ]
