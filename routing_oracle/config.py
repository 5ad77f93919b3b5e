"""Configuration loader for routing-oracle."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List
import os
import yaml

from routing_oracle.errors import ConfigError
from routing_oracle.expectations import RoutingExpectation, load_expectations, select_categories
from routing_oracle.pipeline import DEFAULT_STRATEGY, OracleConfig
from routing_oracle.schemas import VOTING_STRATEGIES

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "routing-oracle" / "config.yaml"
TRANSPORTS = ("mcp", "http", "simulated")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def load_config(path: Path | str | None = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        data = _read_yaml(DEFAULT_CONFIG_PATH)
    user_path = Path(path or os.getenv("ROUTING_ORACLE_CONFIG") or USER_CONFIG_PATH).expanduser()
    if user_path.exists():
        data = _deep_merge(data, _read_yaml(user_path))

    # Environment overrides - Transport
    transport = os.getenv("ROUTING_ORACLE_TRANSPORT")
    if transport:
        data.setdefault("transport", {})["kind"] = transport
    mcp_server = os.getenv("ROUTING_ORACLE_MCP_SERVER")
    if mcp_server:
        data.setdefault("transport", {})["mcp_server"] = mcp_server
    mcp_config = os.getenv("ROUTING_ORACLE_MCP_CONFIG")
    if mcp_config:
        data.setdefault("transport", {})["mcp_config_path"] = mcp_config
    http_url = os.getenv("ROUTING_ORACLE_HTTP_URL")
    if http_url:
        data.setdefault("transport", {})["http_url"] = http_url
    call_timeout = os.getenv("ROUTING_ORACLE_CALL_TIMEOUT")
    if call_timeout:
        try:
            data.setdefault("transport", {})["call_timeout_seconds"] = float(call_timeout)
        except ValueError:
            pass

    # Environment overrides - Oracle settings
    strategy = os.getenv("ROUTING_ORACLE_VOTE_STRATEGY")
    if strategy:
        data.setdefault("oracle", {})["vote_strategy"] = strategy
    min_accuracy = os.getenv("ROUTING_ORACLE_MIN_ACCURACY")
    if min_accuracy:
        try:
            data.setdefault("oracle", {})["min_accuracy"] = float(min_accuracy)
        except ValueError:
            pass

    log_level = os.getenv("ROUTING_ORACLE_LOG_LEVEL")
    if log_level:
        data.setdefault("logging", {})["level"] = log_level

    return data


@dataclass
class Config:
    raw: Dict[str, Any]

    @property
    def transport(self) -> Dict[str, Any]:
        return self.raw.get("transport", {}) or {}

    @property
    def transport_kind(self) -> str:
        return str(self.transport.get("kind", "mcp")).lower()

    @property
    def mcp_server(self) -> str:
        return str(self.transport.get("mcp_server", "nexus-agents"))

    @property
    def mcp_config_path(self) -> Path | None:
        path = self.transport.get("mcp_config_path")
        return Path(path).expanduser() if path else None

    @property
    def http_url(self) -> str | None:
        return self.transport.get("http_url") or None

    @property
    def call_timeout_seconds(self) -> float:
        """Per-call timeout for remote tools in seconds. Default 2 minutes."""
        return float(self.transport.get("call_timeout_seconds", 120))

    @property
    def oracle(self) -> Dict[str, Any]:
        return self.raw.get("oracle", {}) or {}

    @property
    def include_weather(self) -> bool:
        return bool(self.oracle.get("include_weather", False))

    @property
    def include_vote(self) -> bool:
        return bool(self.oracle.get("include_vote", False))

    @property
    def vote_strategy(self) -> str:
        return str(self.oracle.get("vote_strategy", DEFAULT_STRATEGY))

    @property
    def min_accuracy(self) -> float:
        """Accuracy below this fails `routing-oracle run`. Default 0 (never fails)."""
        return float(self.oracle.get("min_accuracy", 0.0))

    @property
    def report_format(self) -> str:
        return str(self.oracle.get("report_format", "markdown"))

    @property
    def expectations(self) -> List[RoutingExpectation]:
        return load_expectations(self.raw.get("expectations"))

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging", {}) or {}).get("level", "WARNING")).upper()

    def oracle_config(
        self,
        categories: Iterable[str] | None = None,
        include_weather: bool | None = None,
        include_vote: bool | None = None,
        vote_strategy: str | None = None,
    ) -> OracleConfig:
        """Build a run configuration, letting explicit arguments win over the file."""
        strategy = vote_strategy or self.vote_strategy
        if strategy not in VOTING_STRATEGIES:
            raise ConfigError(f"Unknown voting strategy '{strategy}'. Valid: {', '.join(VOTING_STRATEGIES)}")
        selected = select_categories(self.expectations, categories)
        if not selected:
            raise ConfigError("No routing expectations selected")
        return OracleConfig(
            expectations=tuple(selected),
            include_weather=self.include_weather if include_weather is None else include_weather,
            include_vote=self.include_vote if include_vote is None else include_vote,
            vote_strategy=strategy,
        )

    def validate(self) -> None:
        if self.transport_kind not in TRANSPORTS:
            raise ConfigError(f"Unknown transport '{self.transport_kind}'. Valid: {', '.join(TRANSPORTS)}")
        if not 0.0 <= self.min_accuracy <= 1.0:
            raise ConfigError(f"min_accuracy must be between 0 and 1, got {self.min_accuracy}")


def get_config(path: Path | str | None = None) -> Config:
    return Config(load_config(path))
