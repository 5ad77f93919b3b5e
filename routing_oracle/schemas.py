"""Wire contracts for the routing service tools.

Covers: delegate_to_model, weather_report, consensus_vote
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Literal, Optional, TypeVar, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, ValidationError
from pydantic.alias_generators import to_camel

from routing_oracle.errors import ToolCallError

T = TypeVar("T")

TaskCategory = Literal[
    "architecture",
    "code_generation",
    "code_review",
    "research",
    "security_review",
    "planning",
    "documentation",
    "testing",
    "devops",
    "exploration",
]
Capability = Literal["reasoning", "context", "speed", "code"]
VotingStrategy = Literal[
    "simple_majority",
    "supermajority",
    "unanimous",
    "proof_of_learning",
    "higher_order",
]
VoteDecision = Literal["approved", "rejected", "pending", "timeout"]
AgentDecision = Literal["approve", "reject", "abstain"]

TASK_CATEGORIES: tuple[str, ...] = get_args(TaskCategory)
CAPABILITIES: tuple[str, ...] = get_args(Capability)
VOTING_STRATEGIES: tuple[str, ...] = get_args(VotingStrategy)

MAX_PROPOSAL_CHARS = 4000

ROUTE_TOOL = "delegate_to_model"
WEATHER_TOOL = "weather_report"
VOTE_TOOL = "consensus_vote"


class WireModel(BaseModel):
    """Base for payloads that use camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# delegate_to_model
# ============================================================================


class DelegateInput(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    task: str = Field(min_length=1)
    preferred_capability: Optional[Capability] = None
    model_hint: Optional[str] = None
    estimate_tokens: Optional[bool] = None
    billing_mode: Optional[Literal["plan", "api"]] = None


class Capabilities(WireModel):
    reasoning: StrictFloat
    context_window: StrictFloat
    code_generation: StrictFloat
    speed: StrictFloat
    cost: StrictFloat


class Alternative(BaseModel):
    model: str
    score: StrictFloat
    tradeoff: str


class Governance(WireModel):
    domain: str
    voting_threshold: str
    promotion_reason: str


class DelegateResponse(BaseModel):
    """Routing decision returned by delegate_to_model."""

    recommended_model: str
    reasoning: str
    capabilities: Capabilities
    estimated_tokens: StrictFloat
    alternatives: List[Alternative]
    governance: Optional[Governance] = None


# ============================================================================
# weather_report
# ============================================================================


class WeatherInput(WireModel):
    cli: Optional[Literal["claude", "gemini", "codex"]] = None
    category: Optional[TaskCategory] = None
    include_adaptive: Optional[bool] = None


class OverallWeather(WireModel):
    total_tasks: StrictFloat
    success_rate: StrictFloat
    avg_duration_ms: StrictFloat


class CategoryWeather(WireModel):
    count: StrictFloat
    success_rate: StrictFloat
    avg_duration_ms: StrictFloat


class CliWeather(WireModel):
    cli: str
    total_tasks: StrictFloat
    success_rate: StrictFloat
    avg_duration_ms: StrictFloat
    by_category: Dict[str, CategoryWeather]


class AdaptiveBonus(WireModel):
    cli: str
    category: str
    static_bonus: StrictFloat
    adaptive_bonus: StrictFloat
    sample_count: StrictFloat
    sufficient: StrictBool


class RecommendedMapping(WireModel):
    category: str
    recommended_cli: str
    success_rate: StrictFloat
    sample_count: StrictFloat
    confidence: str


class WeatherResponse(WireModel):
    """Point-in-time performance snapshot returned by weather_report."""

    overall: OverallWeather
    cli_weather: List[CliWeather]
    adaptive_bonuses: List[AdaptiveBonus]
    tier_recommendations: List[Dict[str, Any]]
    learning_insights: Optional[List[Dict[str, Any]]] = None
    recommended_mappings: Optional[List[RecommendedMapping]] = None
    exploration_rate: StrictFloat
    cold_start_threshold: StrictFloat
    collected_at: str


# ============================================================================
# consensus_vote
# ============================================================================


class VoteInput(WireModel):
    proposal: str = Field(min_length=1, max_length=MAX_PROPOSAL_CHARS)
    strategy: Optional[VotingStrategy] = None
    quick_mode: Optional[bool] = None
    simulate_votes: Optional[bool] = None


class AgentVote(BaseModel):
    role: str
    decision: AgentDecision
    confidence: StrictFloat
    reasoning: str
    simulated: StrictBool
    error: StrictBool


class VoteCounts(BaseModel):
    approve: StrictFloat
    reject: StrictFloat
    abstain: StrictFloat
    error: StrictFloat


class VoteResponse(WireModel):
    """Outcome of a consensus_vote round."""

    proposal: str
    strategy: VotingStrategy
    decision: VoteDecision
    approval_percentage: StrictFloat
    vote_counts: VoteCounts
    votes: List[AgentVote]
    duration_ms: StrictFloat
    simulate_votes: StrictBool


# ============================================================================
# Validation results
# ============================================================================


@dataclass(frozen=True)
class Validated(Generic[T]):
    """Outcome of checking a payload against a schema."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Validated[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "Validated[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        if not self.ok:
            raise ToolCallError(self.error or "invalid response")
        return self.value  # type: ignore[return-value]


def _validator(model: type[BaseModel], label: str) -> Callable[[Any], Validated[Any]]:
    def validate(raw: Any) -> Validated[Any]:
        try:
            return Validated.success(model.model_validate(raw))
        except ValidationError as exc:
            return Validated.failure(f"{label}: {exc.error_count()} validation error(s): {_first_error(exc)}")

    validate.__name__ = f"validate_{label}"
    validate.__doc__ = f"Check a raw payload against {model.__name__}."
    return validate


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{loc}: {first.get('msg', 'invalid')}"


validate_delegate_input = _validator(DelegateInput, "delegate_input")
validate_delegate_response = _validator(DelegateResponse, "delegate_response")
validate_weather_input = _validator(WeatherInput, "weather_input")
validate_weather_response = _validator(WeatherResponse, "weather_response")
validate_vote_input = _validator(VoteInput, "vote_input")
validate_vote_response = _validator(VoteResponse, "vote_response")
