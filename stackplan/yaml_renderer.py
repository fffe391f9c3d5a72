"""
YAML Renderer Module

Responsibility:
- Deterministically render an ApplyPlan (with its graph) as YAML
- Render an ExecutionReport as YAML
- Preserve variable expressions in config exactly (do not resolve them)
- Maintain plan ordering; no sorting of keys

This is PURE rendering logic.
"""

import yaml

from stackplan.models import ApplyPlan, ExecutionReport, ResourceGraph, thaw


def render_plan(plan: ApplyPlan, graph: ResourceGraph) -> str:
    """
    Render an apply plan.

    Args:
        plan: Plan produced by planner.plan()
        graph: Graph the plan was built from

    Returns:
        YAML string with the order, layers and per-resource wiring
    """
    document = {
        "plan": {
            "order": list(plan),
            "layers": [list(layer) for layer in plan.layers],
            "resources": _render_resources(plan, graph),
        }
    }
    return _dump(document)


def render_report(report: ExecutionReport) -> str:
    """Render the outcome of a run."""
    return _dump({"report": report.as_dict()})


def _render_resources(plan: ApplyPlan, graph: ResourceGraph) -> list:
    resources = []

    for step, name in enumerate(plan, start=1):
        spec = graph.specs[name]
        item = {
            "step": step,
            "name": name,
            "provisioner": spec.provisioner,
        }

        # Only emit wiring that exists
        deps = graph.dependencies(name)
        if deps:
            item["depends_on"] = list(deps)
        if spec.inputs:
            item["inputs"] = dict(spec.inputs)
        if spec.outputs:
            item["outputs"] = list(spec.outputs)
        if spec.config:
            item["config"] = thaw(spec.config)

        resources.append(item)

    return resources


def _dump(document: dict) -> str:
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False, allow_unicode=True)
