"""Routing oracle pipeline.

Chains delegate_to_model -> weather_report -> consensus_vote to validate
routing decisions against known-good expectations.

Every stage has two forms: ``try_*`` returns a ``Validated`` result and never
raises for remote problems, the plain form unwraps it and raises
``ToolCallError``. The orchestrator only uses the ``try_*`` forms, so a
failed call degrades its stage instead of aborting the run.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from routing_oracle.callers import ToolCaller
from routing_oracle.expectations import RoutingExpectation
from routing_oracle.schemas import (
    ROUTE_TOOL,
    VOTE_TOOL,
    WEATHER_TOOL,
    DelegateResponse,
    Validated,
    VoteResponse,
    WeatherResponse,
    validate_delegate_response,
    validate_vote_response,
    validate_weather_response,
)

logger = logging.getLogger(__name__)

ERROR_MARKER = "ERROR"
FAILED_CALL_REASONING = "Tool call failed"
DEFAULT_STRATEGY = "simple_majority"


@dataclass(frozen=True)
class RoutingValidation:
    """Result of validating a single routing decision."""
    category: str
    recommended: str
    expected: str
    correct: bool
    reasoning: str
    alternatives: tuple[str, ...] = ()


@dataclass(frozen=True)
class OracleConfig:
    expectations: tuple[RoutingExpectation, ...]
    include_weather: bool = False
    include_vote: bool = False
    vote_strategy: str = DEFAULT_STRATEGY


@dataclass(frozen=True)
class OracleReport:
    """Everything one pipeline run produced."""
    validations: tuple[RoutingValidation, ...]
    accuracy: float
    weather: Optional[WeatherResponse] = None
    vote_result: Optional[VoteResponse] = None
    misrouted: tuple[RoutingValidation, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "misrouted", get_misrouted(self.validations))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a pocket calculator: .5 always goes up."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


async def _call_tool(
    caller: ToolCaller,
    tool_name: str,
    args: Dict[str, Any],
    validate: Callable[[Any], Validated[Any]],
) -> Validated[Any]:
    try:
        raw = await caller.call(tool_name, args)
    except Exception as e:
        logger.warning(f"{tool_name} call failed: {e}")
        return Validated.failure(f"{tool_name} call failed: {e}")
    result = validate(raw)
    if not result.ok:
        logger.warning(f"{tool_name} returned an invalid response: {result.error}")
    return result


# ============================================================================
# Route
# ============================================================================


def is_acceptable(recommended: str, acceptable_models: Iterable[str]) -> bool:
    """Bidirectional substring match so versioned model names still count.

    "claude-opus-4-6" matches "claude-opus" and "codex" matches "codex-5.3".
    Unrelated names that happen to contain each other also match.
    """
    return any(m in recommended or recommended in m for m in acceptable_models)


def build_validation(expectation: RoutingExpectation, response: DelegateResponse) -> RoutingValidation:
    return RoutingValidation(
        category=expectation.category,
        recommended=response.recommended_model,
        expected=expectation.expected_primary_cli,
        correct=is_acceptable(response.recommended_model, expectation.acceptable_models),
        reasoning=response.reasoning,
        alternatives=tuple(alt.model for alt in response.alternatives),
    )


def failed_validation(expectation: RoutingExpectation) -> RoutingValidation:
    return RoutingValidation(
        category=expectation.category,
        recommended=ERROR_MARKER,
        expected=expectation.expected_primary_cli,
        correct=False,
        reasoning=FAILED_CALL_REASONING,
        alternatives=(),
    )


async def try_route(caller: ToolCaller, expectation: RoutingExpectation) -> Validated[RoutingValidation]:
    """Route one expectation's task and score the recommendation."""
    result = await _call_tool(
        caller,
        ROUTE_TOOL,
        {
            "task": expectation.task,
            "preferred_capability": expectation.preferred_capability,
        },
        validate_delegate_response,
    )
    if not result.ok:
        return Validated.failure(result.error or "route failed")
    return Validated.success(build_validation(expectation, result.value))


async def route_and_validate(caller: ToolCaller, expectation: RoutingExpectation) -> RoutingValidation:
    return (await try_route(caller, expectation)).unwrap()


# ============================================================================
# Weather
# ============================================================================


async def try_fetch_weather(
    caller: ToolCaller,
    cli: str | None = None,
    category: str | None = None,
) -> Validated[WeatherResponse]:
    args: Dict[str, Any] = {"includeAdaptive": True}
    if cli:
        args["cli"] = cli
    if category:
        args["category"] = category
    return await _call_tool(caller, WEATHER_TOOL, args, validate_weather_response)


async def fetch_weather(caller: ToolCaller, cli: str | None = None, category: str | None = None) -> WeatherResponse:
    """Fetch the routing service's performance snapshot."""
    return (await try_fetch_weather(caller, cli=cli, category=category)).unwrap()


def weather_confirms(weather: WeatherResponse, category: str, expected_cli: str) -> bool:
    """Check whether the snapshot's learned mapping agrees with an expectation.

    A cold snapshot (no mappings) or a category without a mapping never
    confirms anything.
    """
    for mapping in weather.recommended_mappings or []:
        if mapping.category == category:
            return mapping.recommended_cli == expected_cli
    return False


def weather_confirmations(weather: WeatherResponse, expectations: Iterable[RoutingExpectation]) -> Dict[str, bool]:
    return {
        exp.category: weather_confirms(weather, exp.category, exp.expected_primary_cli)
        for exp in expectations
    }


# ============================================================================
# Vote
# ============================================================================


def build_proposal(validations: Sequence[RoutingValidation]) -> str:
    correct = sum(1 for v in validations if v.correct)
    total = len(validations)
    percent = int(round_half_up(correct / total * 100)) if total else 0
    summary = "\n".join(
        f"{v.category}: {'CORRECT' if v.correct else 'WRONG'} "
        f"(got {v.recommended}, expected {v.expected})"
        for v in validations
    )
    return (
        f"Routing accuracy is {percent}% ({correct}/{total} correct).\n\n"
        f"Results:\n{summary}\n\n"
        "Should we approve this routing quality?"
    )


async def try_vote(
    caller: ToolCaller,
    validations: Sequence[RoutingValidation],
    strategy: str = DEFAULT_STRATEGY,
) -> Validated[VoteResponse]:
    """Ask the consensus panel whether the routing quality is acceptable."""
    # The 4000 char proposal limit belongs to the remote contract; an
    # oversized proposal comes back as an ordinary call failure.
    return await _call_tool(
        caller,
        VOTE_TOOL,
        {
            "proposal": build_proposal(validations),
            "strategy": strategy,
            "quickMode": True,
            "simulateVotes": False,
        },
        validate_vote_response,
    )


async def vote_on_quality(
    caller: ToolCaller,
    validations: Sequence[RoutingValidation],
    strategy: str = DEFAULT_STRATEGY,
) -> VoteResponse:
    return (await try_vote(caller, validations, strategy)).unwrap()


# ============================================================================
# Scoring
# ============================================================================


def compute_accuracy(validations: Sequence[RoutingValidation]) -> float:
    """Fraction of correct validations, three decimals; 0 when empty."""
    if not validations:
        return 0.0
    correct = sum(1 for v in validations if v.correct)
    return round_half_up(correct / len(validations), 3)


def get_misrouted(validations: Iterable[RoutingValidation]) -> tuple[RoutingValidation, ...]:
    return tuple(v for v in validations if not v.correct)


# ============================================================================
# Full pipeline
# ============================================================================


async def run_oracle_pipeline(caller: ToolCaller, config: OracleConfig) -> OracleReport:
    """Run route -> weather -> vote and assemble the report.

    Stages run one after another. A failed route call becomes an ERROR
    validation for that expectation only; a failed weather or vote call
    leaves that field empty. The run always completes.
    """
    validations: List[RoutingValidation] = []
    for expectation in config.expectations:
        routed = await try_route(caller, expectation)
        if routed.ok:
            validations.append(routed.value)
        else:
            validations.append(failed_validation(expectation))

    accuracy = compute_accuracy(validations)
    logger.info(
        f"Routed {len(validations)} expectations: accuracy={accuracy} "
        f"misrouted={[v.category for v in get_misrouted(validations)]}"
    )

    weather: Optional[WeatherResponse] = None
    if config.include_weather:
        fetched = await try_fetch_weather(caller)
        weather = fetched.value if fetched.ok else None

    vote_result: Optional[VoteResponse] = None
    if config.include_vote:
        voted = await try_vote(caller, validations, config.vote_strategy)
        vote_result = voted.value if voted.ok else None
        if vote_result is not None:
            logger.info(f"Quality vote: {vote_result.decision} ({vote_result.approval_percentage}%)")

    return OracleReport(
        validations=tuple(validations),
        accuracy=accuracy,
        weather=weather,
        vote_result=vote_result,
    )
