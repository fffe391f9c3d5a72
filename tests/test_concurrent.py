"""
Tests for layer-parallel execution.
"""

import threading

from stackplan import graph_builder, planner
from stackplan.errors import PlanMismatchError, ProviderError
from stackplan.executor import execute_concurrent
from stackplan.models import ApplyPlan, ResourceStatus, RunStatus

from conftest import RecordingProvisioner, spec


def test_demo_stack_completes(demo_graph, fake_cloud):
    report = execute_concurrent(demo_graph, fake_cloud.registry().bind(demo_graph),
                                max_workers=4, timeout=None)

    assert report.status == RunStatus.COMPLETED
    assert [e.name for e in report.entries] == ["storage", "security", "network", "cloudflare"]
    assert dict(fake_cloud.calls)["cloudflare"]["content"] == report.outputs_for("network")["cf_domain"]


def test_same_layer_runs_in_parallel(demo_graph, fake_cloud):
    # Both first-layer resources must be inside their callbacks at once to pass the barrier
    barrier = threading.Barrier(2, timeout=5)
    inner = fake_cloud.registry().bind(demo_graph)

    def apply(name, config):
        if name in ("storage", "security"):
            barrier.wait()
        return inner(name, config)

    report = execute_concurrent(demo_graph, apply, max_workers=2, timeout=None)

    assert report.status == RunStatus.COMPLETED


def test_dependents_wait_for_previous_layer():
    graph = graph_builder.build([
        spec("a", outputs=["id"]),
        spec("b", outputs=["id"]),
        spec("c", inputs={"a": "a.id", "b": "b.id"}),
    ])
    provisioner = RecordingProvisioner(graph)

    report = execute_concurrent(graph, provisioner, max_workers=4, timeout=None)

    assert report.status == RunStatus.COMPLETED
    assert provisioner.applied_names[-1] == "c"
    assert dict(provisioner.calls)["c"] == {"a": "a-id", "b": "b-id"}


def test_failure_stops_later_layers():
    graph = graph_builder.build([
        spec("a", outputs=["id"]),
        spec("b", outputs=["id"]),
        spec("c", inputs={"a": "a.id"}),
    ])
    provisioner = RecordingProvisioner(graph, fail={"b": ProviderError("denied")})

    report = execute_concurrent(graph, provisioner, max_workers=4, timeout=None)

    assert report.status == RunStatus.ABORTED
    assert report.entry("a").status == ResourceStatus.APPLIED
    assert report.entry("b").status == ResourceStatus.FAILED
    assert report.entry("c") is None
    assert "c" not in provisioner.applied_names
    assert [e.name for e in report.entries] == ["a", "b"]


def test_uses_given_plan_and_prior(chain_specs):
    graph = graph_builder.build(chain_specs)
    apply_plan = planner.plan(graph)
    first = execute_concurrent(graph, RecordingProvisioner(graph, fail={"c": ProviderError("x")}),
                               plan=apply_plan, max_workers=2, timeout=None)
    provisioner = RecordingProvisioner(graph)

    second = execute_concurrent(graph, provisioner, plan=apply_plan, prior=first,
                                max_workers=2, timeout=None)

    assert first.applied() == ["a", "b"]
    assert provisioner.applied_names == ["c"]
    assert second.status == RunStatus.COMPLETED


def test_plan_without_layers_is_regrouped(chain_specs):
    graph = graph_builder.build(chain_specs)
    provisioner = RecordingProvisioner(graph)

    report = execute_concurrent(graph, provisioner, plan=ApplyPlan(names=("a", "b", "c")),
                                max_workers=2, timeout=None)

    assert report.status == RunStatus.COMPLETED
    assert report.applied() == ["a", "b", "c"]
    assert provisioner.applied_names == ["a", "b", "c"]


def test_plan_with_unknown_name_applies_nothing(chain_specs):
    graph = graph_builder.build(chain_specs)
    provisioner = RecordingProvisioner(graph)

    report = execute_concurrent(graph, provisioner, plan=ApplyPlan(names=("a", "ghost")),
                                max_workers=2, timeout=None)

    assert report.status == RunStatus.ABORTED
    assert isinstance(report.error, PlanMismatchError)
    assert report.error.unknown == ["ghost"]
    assert provisioner.calls == []
