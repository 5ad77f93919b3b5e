#!/usr/bin/env python3
"""
Routing oracle demo -- validates the built-in expectations against the
simulated routing service. No MCP server needed.

Run:
    python examples/demo.py
    python examples/demo.py --wrong documentation --format text
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure routing_oracle is importable when running from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from routing_oracle.expectations import DEFAULT_EXPECTATIONS, RoutingExpectation
from routing_oracle.pipeline import OracleConfig, is_acceptable, run_oracle_pipeline
from routing_oracle.reporter import REPORT_FORMATS, generate_report
from routing_oracle.schemas import ROUTE_TOOL, TASK_CATEGORIES
from routing_oracle.simulation import (
    MOCK_DELEGATE_WRONG,
    MOCK_VOTE_REJECTED,
    ROUTE_FIXTURES,
    simulated_caller,
)


def wrong_route_for(expectation: RoutingExpectation) -> dict:
    """First canned route the expectation does not accept."""
    for fixture in (*ROUTE_FIXTURES, MOCK_DELEGATE_WRONG):
        if not is_acceptable(fixture["recommended_model"], expectation.acceptable_models):
            return dict(fixture)
    raise ValueError(f"every canned route is acceptable for {expectation.category}")


def run_demo(wrong: list[str], fmt: str) -> str:
    """Run the full pipeline; categories listed in `wrong` get a bad route."""
    vote = MOCK_VOTE_REJECTED if wrong else None
    caller = simulated_caller(DEFAULT_EXPECTATIONS, vote=vote)
    route = caller.responses[ROUTE_TOOL]
    wrong_routes = {
        exp.task: wrong_route_for(exp) for exp in DEFAULT_EXPECTATIONS if exp.category in wrong
    }

    def misroute(args: dict) -> dict:
        if args.get("task") in wrong_routes:
            return dict(wrong_routes[args["task"]])
        return route(args)

    caller.responses[ROUTE_TOOL] = misroute
    report = asyncio.run(run_oracle_pipeline(caller, OracleConfig(
        expectations=DEFAULT_EXPECTATIONS,
        include_weather=True,
        include_vote=True,
    )))
    return generate_report(report, fmt)


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Run the routing oracle against the simulated routing service."
    )
    parser.add_argument(
        "--wrong",
        action="append",
        default=[],
        choices=TASK_CATEGORIES,
        help="Category the simulated router should get wrong (repeatable).",
    )
    parser.add_argument("--format", choices=REPORT_FORMATS, default="markdown")
    args = parser.parse_args()
    print(run_demo(args.wrong, args.format))


if __name__ == "__main__":
    main()
