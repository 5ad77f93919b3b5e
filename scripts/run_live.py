#!/usr/bin/env python3
"""Run the routing oracle against a live routing service.

Usage: ROUTING_ORACLE_LIVE=true python scripts/run_live.py [--http-url URL]
"""
import argparse
import asyncio
import json
import logging
import os
import sys

from routing_oracle.callers import build_caller
from routing_oracle.config import get_config
from routing_oracle.errors import ConfigError
from routing_oracle.expectations import RoutingExpectation
from routing_oracle.pipeline import OracleConfig, run_oracle_pipeline
from routing_oracle.reporter import report_to_dict

LIVE_EXPECTATION = RoutingExpectation(
    category="code_generation",
    task="Implement a REST API with authentication",
    preferred_capability="code",
    expected_primary_cli="claude",
    acceptable_models=("claude-opus-4-6", "claude-sonnet-4-5-20250929"),
)


def is_live_mode() -> bool:
    return os.getenv("ROUTING_ORACLE_LIVE", "").lower() in ("true", "1", "yes")


async def run(transport: str | None) -> dict:
    config = get_config()
    caller = build_caller(config, transport=transport)
    try:
        report = await run_oracle_pipeline(caller, OracleConfig(
            expectations=(LIVE_EXPECTATION,),
            include_weather=True,
            include_vote=True,
        ))
    finally:
        await caller.aclose()
    return report_to_dict(report)


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--transport", choices=("mcp", "http"))
    args = parser.parse_args()

    if not is_live_mode():
        print("Set ROUTING_ORACLE_LIVE=true to run against a live MCP server.", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO)
    print("Running routing oracle against live MCP server...\n")
    try:
        payload = asyncio.run(run(args.transport))
    except ConfigError as e:
        print(f"Failed to set up live caller: {e}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
