"""Routing oracle: checks a task-routing service against known-good expectations."""
from __future__ import annotations

from routing_oracle.callers import HttpToolCaller, MCPToolCaller, ScriptedCaller, ToolCaller, build_caller
from routing_oracle.errors import ConfigError, OracleError, ToolCallError
from routing_oracle.expectations import DEFAULT_EXPECTATIONS, RoutingExpectation
from routing_oracle.pipeline import (
    OracleConfig,
    OracleReport,
    RoutingValidation,
    compute_accuracy,
    fetch_weather,
    get_misrouted,
    route_and_validate,
    run_oracle_pipeline,
    vote_on_quality,
    weather_confirms,
)
from routing_oracle.reporter import generate_report, parse_report

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DEFAULT_EXPECTATIONS",
    "HttpToolCaller",
    "MCPToolCaller",
    "OracleConfig",
    "OracleError",
    "OracleReport",
    "RoutingExpectation",
    "RoutingValidation",
    "ScriptedCaller",
    "ToolCallError",
    "ToolCaller",
    "build_caller",
    "compute_accuracy",
    "fetch_weather",
    "generate_report",
    "get_misrouted",
    "parse_report",
    "route_and_validate",
    "run_oracle_pipeline",
    "vote_on_quality",
    "weather_confirms",
]
