"""Exceptions raised by routing-oracle."""
from __future__ import annotations


class OracleError(Exception):
    """Base class for routing-oracle errors."""


class ToolCallError(OracleError):
    """A remote tool call did not produce a usable result."""


class ConfigError(OracleError):
    """Raised when oracle configuration is invalid."""
