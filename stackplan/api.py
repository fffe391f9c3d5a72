"""
HTTP API for validating and planning declarations.
"""

import logging
from typing import Dict, List

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from stackplan import graph_builder, planner
from stackplan.declarations import StackDeclaration
from stackplan.errors import CycleError, GraphError

logger = logging.getLogger(__name__)

app = FastAPI(title="stackplan")


class ValidationResult(BaseModel):
    valid: bool
    problems: List[str] = []


class PlanResult(BaseModel):
    order: List[str]
    layers: List[List[str]]
    dependencies: Dict[str, List[str]]


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/validate", response_model=ValidationResult)
async def validate(stack: StackDeclaration):
    specs = stack.to_specs()
    problems = [str(p) for p in graph_builder.validate_specs(specs)]

    if not problems:
        try:
            planner.detect_cycle(graph_builder.build(specs))
        except CycleError as e:
            problems.append(str(e))

    return ValidationResult(valid=not problems, problems=problems)


@app.post("/plan", response_model=PlanResult)
async def plan(stack: StackDeclaration):
    try:
        graph = graph_builder.build(stack.to_specs())
        apply_plan = planner.plan(graph)
    except (GraphError, CycleError) as e:
        logger.info("Rejected plan request: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return PlanResult(
        order=list(apply_plan),
        layers=[list(layer) for layer in apply_plan.layers],
        dependencies={name: list(graph.dependencies(name)) for name in apply_plan},
    )
