"""Known-good routing expectations used as ground truth."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from routing_oracle.errors import ConfigError
from routing_oracle.schemas import CAPABILITIES, TASK_CATEGORIES


@dataclass(frozen=True)
class RoutingExpectation:
    """Known-good routing expectation for a task category."""
    category: str
    task: str
    preferred_capability: str
    expected_primary_cli: str
    acceptable_models: tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "task": self.task,
            "preferred_capability": self.preferred_capability,
            "expected_primary_cli": self.expected_primary_cli,
            "acceptable_models": list(self.acceptable_models),
        }


DEFAULT_EXPECTATIONS: tuple[RoutingExpectation, ...] = (
    RoutingExpectation(
        category="architecture",
        task="Design a microservices architecture for a payment system",
        preferred_capability="reasoning",
        expected_primary_cli="claude",
        acceptable_models=("claude-opus", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="code_generation",
        task="Write unit tests for a TypeScript REST API",
        preferred_capability="code",
        expected_primary_cli="codex",
        acceptable_models=("codex-5.3", "codex-5.2", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="code_review",
        task="Review this pull request for security vulnerabilities",
        preferred_capability="reasoning",
        expected_primary_cli="codex",
        acceptable_models=("codex-5.3", "codex-5.2", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="research",
        task="Survey recent papers on transformer attention mechanisms",
        preferred_capability="reasoning",
        expected_primary_cli="gemini",
        acceptable_models=("gemini-pro", "gemini-flash", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="security_review",
        task="Audit this codebase for OWASP Top 10 vulnerabilities",
        preferred_capability="reasoning",
        expected_primary_cli="claude",
        acceptable_models=("claude-opus", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="planning",
        task="Create a sprint plan for implementing OAuth2 integration",
        preferred_capability="reasoning",
        expected_primary_cli="claude",
        acceptable_models=("claude-opus", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="documentation",
        task="Write API documentation for the REST endpoints",
        preferred_capability="reasoning",
        expected_primary_cli="gemini",
        acceptable_models=("gemini-pro", "gemini-flash", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="testing",
        task="Generate integration tests for the database layer",
        preferred_capability="code",
        expected_primary_cli="codex",
        acceptable_models=("codex-5.3", "codex-5.2", "claude-sonnet"),
    ),
    RoutingExpectation(
        category="devops",
        task="Write a Dockerfile and CI pipeline for the microservice",
        preferred_capability="code",
        expected_primary_cli="claude",
        acceptable_models=("claude-sonnet", "gemini-pro", "codex-5.3"),
    ),
    RoutingExpectation(
        category="exploration",
        task="Explore the codebase and find all API endpoints",
        preferred_capability="context",
        expected_primary_cli="gemini",
        acceptable_models=("gemini-pro", "gemini-flash", "claude-sonnet"),
    ),
)


def expectation_from_dict(data: Dict[str, Any]) -> RoutingExpectation:
    """Build an expectation from a config entry, rejecting unknown values."""
    if not isinstance(data, dict):
        raise ConfigError(f"Expectation entry must be a mapping, got {type(data).__name__}")
    category = str(data.get("category") or "")
    if category not in TASK_CATEGORIES:
        raise ConfigError(f"Unknown task category '{category}'. Valid: {', '.join(TASK_CATEGORIES)}")
    task = str(data.get("task") or "").strip()
    if not task:
        raise ConfigError(f"Expectation for '{category}' has no task text")
    capability = str(data.get("preferred_capability") or "")
    if capability not in CAPABILITIES:
        raise ConfigError(
            f"Expectation for '{category}' has unknown capability '{capability}'. "
            f"Valid: {', '.join(CAPABILITIES)}"
        )
    expected = str(data.get("expected_primary_cli") or "").strip()
    if not expected:
        raise ConfigError(f"Expectation for '{category}' has no expected_primary_cli")
    models = data.get("acceptable_models") or []
    if isinstance(models, str):
        models = [models]
    acceptable = tuple(str(m).strip() for m in models if str(m).strip())
    if not acceptable:
        raise ConfigError(f"Expectation for '{category}' needs at least one acceptable model")
    return RoutingExpectation(
        category=category,
        task=task,
        preferred_capability=capability,
        expected_primary_cli=expected,
        acceptable_models=acceptable,
    )


def load_expectations(entries: Iterable[Dict[str, Any]] | None) -> List[RoutingExpectation]:
    """Parse configured expectations, falling back to the built-in set."""
    if not entries:
        return list(DEFAULT_EXPECTATIONS)
    return [expectation_from_dict(entry) for entry in entries]


def select_categories(
    expectations: Iterable[RoutingExpectation],
    categories: Iterable[str] | None,
) -> List[RoutingExpectation]:
    """Keep only expectations whose category was requested, in original order."""
    items = list(expectations)
    wanted = [c for c in (categories or []) if c]
    if not wanted:
        return items
    unknown = [c for c in wanted if c not in TASK_CATEGORIES]
    if unknown:
        raise ConfigError(f"Unknown task category: {', '.join(unknown)}")
    keep = set(wanted)
    return [item for item in items if item.category in keep]
