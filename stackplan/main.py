#!/usr/bin/env python3
"""
Command-line entry point

Responsibility:
- validate: check a declaration file (duplicates, unknown references)
- plan: print the apply order for a declaration file as YAML
- demo: run the static-site stack against fake provisioners

Exit code is 0 on success and 1 on any declaration, graph or cycle error,
or when a run is aborted.
"""

import argparse
import sys

from stackplan import graph_builder, planner
from stackplan.config import configure_logging
from stackplan.declarations import load_declarations, load_declarations_file
from stackplan.demo_stack import DEMO_DECLARATIONS, FakeCloud
from stackplan.errors import StackPlanError
from stackplan.executor import execute, execute_concurrent
from stackplan.models import RunStatus
from stackplan.yaml_renderer import render_plan, render_report


def print_header(title: str):
    print()
    print("=" * 80)
    print(title)
    print("=" * 80)
    print()


def cmd_validate(args) -> int:
    specs = load_declarations_file(args.file)
    problems = graph_builder.validate_specs(specs)

    if problems:
        print_header("DECLARATIONS INVALID")
        for problem in problems:
            print(f"  ✗ {problem}")
        print()
        return 1

    graph = graph_builder.build(specs)
    planner.detect_cycle(graph)
    print(f"✓ {len(graph)} resources declared, no problems found")
    return 0


def cmd_plan(args) -> int:
    specs = load_declarations_file(args.file)
    graph = graph_builder.build(specs)
    apply_plan = planner.plan(graph)

    if args.layers:
        for depth, layer in enumerate(apply_plan.layers):
            print(f"layer {depth}: {', '.join(layer)}")
    else:
        print(render_plan(apply_plan, graph), end="")
    return 0


def cmd_demo(args) -> int:
    print_header("STATIC SITE STACK - DEMO RUN WITH FAKE PROVISIONERS")

    graph = graph_builder.build(load_declarations(DEMO_DECLARATIONS))
    apply_plan = planner.plan(graph)
    cloud = FakeCloud(fail=args.fail or ())
    apply = cloud.registry().bind(graph)

    print(f"Plan: {' -> '.join(apply_plan)}")
    print()

    if args.concurrent:
        report = execute_concurrent(graph, apply, plan=apply_plan)
    else:
        report = execute(apply_plan, graph, apply)

    print(render_report(report), end="")
    print()

    if report.status == RunStatus.COMPLETED:
        print("✓ Stack applied")
        return 0

    print(f"⚠️  Run aborted at: {', '.join(report.failed())}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackplan",
        description="Plan and apply declared infrastructure resources in dependency order.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: STACKPLAN_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Validate a declaration file")
    p_validate.add_argument("file")
    p_validate.set_defaults(func=cmd_validate)

    p_plan = sub.add_parser("plan", help="Print the apply plan for a declaration file")
    p_plan.add_argument("file")
    p_plan.add_argument("--layers", action="store_true", help="Print dependency layers only")
    p_plan.set_defaults(func=cmd_plan)

    p_demo = sub.add_parser("demo", help="Apply the static-site stack with fake provisioners")
    p_demo.add_argument("--fail", action="append", metavar="NAME",
                        help="Make the named resource fail (repeatable)")
    p_demo.add_argument("--concurrent", action="store_true",
                        help="Apply independent resources in parallel")
    p_demo.set_defaults(func=cmd_demo)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.func(args)
    except StackPlanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
