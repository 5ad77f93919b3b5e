"""Command line interface for routing-oracle."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List

from routing_oracle.callers import ToolCaller, build_caller
from routing_oracle.config import Config, get_config
from routing_oracle.errors import ConfigError
from routing_oracle.mcp_bridge import MCPBridge
from routing_oracle.pipeline import OracleConfig, OracleReport, run_oracle_pipeline, try_fetch_weather, weather_confirmations
from routing_oracle.reporter import REPORT_FORMATS, generate_report
from routing_oracle.schemas import TASK_CATEGORIES, VOTING_STRATEGIES

logger = logging.getLogger(__name__)


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2))


async def _run_pipeline(caller: ToolCaller, oracle_config: OracleConfig) -> OracleReport:
    try:
        return await run_oracle_pipeline(caller, oracle_config)
    finally:
        await caller.aclose()


def cmd_run(args: argparse.Namespace, config: Config) -> None:
    oracle_config = config.oracle_config(
        categories=args.category,
        include_weather=True if args.weather else None,
        include_vote=True if args.vote else None,
        vote_strategy=args.strategy,
    )
    caller = build_caller(config, transport=args.transport)
    report = asyncio.run(_run_pipeline(caller, oracle_config))
    rendered = generate_report(report, args.format or config.report_format)
    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rendered + "\n", encoding="utf-8")
        print(f"[routing-oracle] report written to {path}", file=sys.stderr)
    else:
        print(rendered)
    min_accuracy = config.min_accuracy if args.min_accuracy is None else args.min_accuracy
    if report.accuracy < min_accuracy:
        print(
            f"[routing-oracle] accuracy {report.accuracy} below minimum {min_accuracy}",
            file=sys.stderr,
        )
        raise SystemExit(2)


def cmd_expectations(args: argparse.Namespace, config: Config) -> None:
    oracle_config = config.oracle_config(categories=args.category)
    _print({"expectations": [exp.to_dict() for exp in oracle_config.expectations]})


async def _fetch_weather(caller: ToolCaller, cli: str | None, category: str | None):
    try:
        return await try_fetch_weather(caller, cli=cli, category=category)
    finally:
        await caller.aclose()


def cmd_weather(args: argparse.Namespace, config: Config) -> None:
    caller = build_caller(config, transport=args.transport)
    result = asyncio.run(_fetch_weather(caller, args.cli, args.category))
    if not result.ok:
        print(f"[routing-oracle] weather_report failed: {result.error}", file=sys.stderr)
        raise SystemExit(1)
    weather = result.value
    _print({
        "overall": weather.overall.model_dump(by_alias=True),
        "clis": [entry.cli for entry in weather.cli_weather],
        "collected_at": weather.collected_at,
        "confirmations": weather_confirmations(weather, config.expectations),
    })


def cmd_tools(args: argparse.Namespace, config: Config) -> None:
    if config.transport_kind != "mcp":
        raise ConfigError(f"'tools' needs the mcp transport, configured: {config.transport_kind}")
    with MCPBridge(config_path=config.mcp_config_path) as bridge:
        response = bridge.list_tools(config.mcp_server, timeout=config.call_timeout_seconds)
    if not response.ok:
        print(f"[routing-oracle] tools/list failed: {response.error}", file=sys.stderr)
        raise SystemExit(1)
    tools = (response.result or {}).get("tools", [])
    _print({
        "server": config.mcp_server,
        "tools": [{"name": t.get("name"), "description": t.get("description", "")} for t in tools],
    })


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="routing-oracle")
    parser.add_argument("--config", help="YAML config merged over the defaults")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Validate routing decisions and print a report")
    run.add_argument("--category", action="append", choices=TASK_CATEGORIES)
    run.add_argument("--weather", action="store_true", help="Fetch the performance snapshot")
    run.add_argument("--vote", action="store_true", help="Ask for a consensus vote on the results")
    run.add_argument("--strategy", choices=VOTING_STRATEGIES)
    run.add_argument("--format", choices=REPORT_FORMATS)
    run.add_argument("--output")
    run.add_argument("--transport", choices=("mcp", "http", "simulated"))
    run.add_argument("--min-accuracy", type=float)

    expectations = sub.add_parser("expectations", help="Show configured routing expectations")
    expectations.add_argument("--category", action="append", choices=TASK_CATEGORIES)

    weather = sub.add_parser("weather", help="Fetch the performance snapshot")
    weather.add_argument("--cli", choices=("claude", "gemini", "codex"))
    weather.add_argument("--category", choices=TASK_CATEGORIES)
    weather.add_argument("--transport", choices=("mcp", "http", "simulated"))

    sub.add_parser("tools", help="List tools exposed by the MCP server")

    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = get_config(args.config)
        config.validate()
        logging.basicConfig(
            level=getattr(logging, config.log_level, logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if args.command == "run":
            cmd_run(args, config)
        elif args.command == "expectations":
            cmd_expectations(args, config)
        elif args.command == "weather":
            cmd_weather(args, config)
        elif args.command == "tools":
            cmd_tools(args, config)
        else:
            parser.print_help()
    except ConfigError as e:
        print(f"[routing-oracle] config error: {e}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
