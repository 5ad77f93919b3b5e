"""Canned routing service responses for offline runs and tests."""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable

from routing_oracle.callers import ScriptedCaller
from routing_oracle.expectations import DEFAULT_EXPECTATIONS, RoutingExpectation
from routing_oracle.pipeline import is_acceptable
from routing_oracle.schemas import ROUTE_TOOL, VOTE_TOOL, WEATHER_TOOL

# ============================================================================
# delegate_to_model
# ============================================================================

MOCK_DELEGATE_ARCHITECTURE: Dict[str, Any] = {
    "recommended_model": "claude-opus",
    "reasoning": "Selected claude-opus for architecture task: strong reasoning, plan billing",
    "capabilities": {
        "reasoning": 10,
        "contextWindow": 200000,
        "codeGeneration": 9,
        "speed": 5,
        "cost": 10,
    },
    "estimated_tokens": 30,
    "alternatives": [
        {"model": "claude-sonnet", "score": 66, "tradeoff": "faster but less capable"},
        {"model": "gemini-pro", "score": 55, "tradeoff": "cheaper but less capable"},
    ],
}

MOCK_DELEGATE_CODE: Dict[str, Any] = {
    "recommended_model": "codex-5.3",
    "reasoning": "Selected codex-5.3 for code generation: strong code, testing task",
    "capabilities": {
        "reasoning": 10,
        "contextWindow": 400000,
        "codeGeneration": 10,
        "speed": 7,
        "cost": 5,
    },
    "estimated_tokens": 22,
    "alternatives": [
        {"model": "codex-5.2", "score": 77, "tradeoff": "faster but less capable"},
        {"model": "claude-sonnet", "score": 66, "tradeoff": "cheaper but less capable"},
    ],
}

MOCK_DELEGATE_RESEARCH: Dict[str, Any] = {
    "recommended_model": "gemini-pro",
    "reasoning": "Selected gemini-pro for research: strong context window, research task",
    "capabilities": {
        "reasoning": 8,
        "contextWindow": 2000000,
        "codeGeneration": 7,
        "speed": 7,
        "cost": 3,
    },
    "estimated_tokens": 25,
    "alternatives": [
        {"model": "gemini-flash", "score": 60, "tradeoff": "faster but less capable"},
        {"model": "claude-sonnet", "score": 55, "tradeoff": "smaller context"},
    ],
}

MOCK_DELEGATE_WRONG: Dict[str, Any] = {
    "recommended_model": "gemini-flash",
    "reasoning": "Selected gemini-flash: fast fallback model",
    "capabilities": {
        "reasoning": 6,
        "contextWindow": 1000000,
        "codeGeneration": 6,
        "speed": 10,
        "cost": 2,
    },
    "estimated_tokens": 15,
    "alternatives": [],
}

# ============================================================================
# weather_report
# ============================================================================

MOCK_WEATHER_HEALTHY: Dict[str, Any] = {
    "overall": {"totalTasks": 50, "successRate": 0.92, "avgDurationMs": 3500},
    "cliWeather": [
        {
            "cli": "claude",
            "totalTasks": 20,
            "successRate": 0.95,
            "avgDurationMs": 4000,
            "byCategory": {
                "architecture": {"count": 8, "successRate": 1.0, "avgDurationMs": 5000},
                "security_review": {"count": 6, "successRate": 0.83, "avgDurationMs": 4500},
                "planning": {"count": 6, "successRate": 1.0, "avgDurationMs": 3000},
            },
        },
        {
            "cli": "codex",
            "totalTasks": 18,
            "successRate": 0.89,
            "avgDurationMs": 3000,
            "byCategory": {
                "code_generation": {"count": 10, "successRate": 0.9, "avgDurationMs": 2500},
                "testing": {"count": 5, "successRate": 0.8, "avgDurationMs": 3500},
                "code_review": {"count": 3, "successRate": 1.0, "avgDurationMs": 3000},
            },
        },
        {
            "cli": "gemini",
            "totalTasks": 12,
            "successRate": 0.92,
            "avgDurationMs": 3500,
            "byCategory": {
                "research": {"count": 5, "successRate": 1.0, "avgDurationMs": 4000},
                "documentation": {"count": 4, "successRate": 0.75, "avgDurationMs": 3000},
                "exploration": {"count": 3, "successRate": 1.0, "avgDurationMs": 3500},
            },
        },
    ],
    "adaptiveBonuses": [
        {
            "cli": "claude",
            "category": "architecture",
            "staticBonus": 15,
            "adaptiveBonus": 3,
            "sampleCount": 8,
            "sufficient": False,
        },
        {
            "cli": "codex",
            "category": "code_generation",
            "staticBonus": 15,
            "adaptiveBonus": 2,
            "sampleCount": 10,
            "sufficient": True,
        },
    ],
    "tierRecommendations": [],
    "learningInsights": [
        {"cli": "claude", "category": "architecture", "trend": "improving", "confidence": 0.7},
    ],
    "recommendedMappings": [
        {
            "category": "architecture",
            "recommendedCli": "claude",
            "successRate": 1.0,
            "sampleCount": 8,
            "confidence": "medium",
        },
        {
            "category": "code_generation",
            "recommendedCli": "codex",
            "successRate": 0.9,
            "sampleCount": 10,
            "confidence": "high",
        },
    ],
    "explorationRate": 0.1,
    "coldStartThreshold": 10,
    "collectedAt": "2026-02-14T12:00:00Z",
}

MOCK_WEATHER_COLD: Dict[str, Any] = {
    "overall": {"totalTasks": 0, "successRate": 0, "avgDurationMs": 0},
    "cliWeather": [],
    "adaptiveBonuses": [],
    "tierRecommendations": [],
    "explorationRate": 0.1,
    "coldStartThreshold": 10,
    "collectedAt": "2026-02-14T12:00:00Z",
}

# ============================================================================
# consensus_vote
# ============================================================================

MOCK_VOTE_APPROVED: Dict[str, Any] = {
    "proposal": "Routing quality is acceptable",
    "strategy": "simple_majority",
    "decision": "approved",
    "approvalPercentage": 100,
    "voteCounts": {"approve": 3, "reject": 0, "abstain": 0, "error": 0},
    "votes": [
        {
            "role": "Software Architect",
            "decision": "approve",
            "confidence": 0.9,
            "reasoning": "Routing decisions match expected mappings.",
            "simulated": False,
            "error": False,
        },
        {
            "role": "Security Engineer",
            "decision": "approve",
            "confidence": 0.85,
            "reasoning": "Security tasks correctly routed to claude.",
            "simulated": False,
            "error": False,
        },
        {
            "role": "Developer Experience",
            "decision": "approve",
            "confidence": 0.88,
            "reasoning": "Code tasks routed to codex as expected.",
            "simulated": False,
            "error": False,
        },
    ],
    "durationMs": 15000,
    "simulateVotes": False,
}

MOCK_VOTE_REJECTED: Dict[str, Any] = {
    "proposal": "Routing quality is acceptable",
    "strategy": "supermajority",
    "decision": "rejected",
    "approvalPercentage": 33.33,
    "voteCounts": {"approve": 1, "reject": 2, "abstain": 0, "error": 0},
    "votes": [
        {
            "role": "Software Architect",
            "decision": "reject",
            "confidence": 0.8,
            "reasoning": "Too many misrouted tasks.",
            "simulated": False,
            "error": False,
        },
        {
            "role": "Security Engineer",
            "decision": "reject",
            "confidence": 0.9,
            "reasoning": "Security tasks misrouted to gemini.",
            "simulated": False,
            "error": False,
        },
        {
            "role": "Developer Experience",
            "decision": "approve",
            "confidence": 0.6,
            "reasoning": "Code routing acceptable.",
            "simulated": False,
            "error": False,
        },
    ],
    "durationMs": 12000,
    "simulateVotes": False,
}

ROUTE_FIXTURES = (MOCK_DELEGATE_ARCHITECTURE, MOCK_DELEGATE_CODE, MOCK_DELEGATE_RESEARCH)


def route_fixture_for(expectation: RoutingExpectation | None) -> Dict[str, Any]:
    """Pick the first canned decision the expectation would accept."""
    if expectation is not None:
        for fixture in ROUTE_FIXTURES:
            if is_acceptable(fixture["recommended_model"], expectation.acceptable_models):
                return copy.deepcopy(fixture)
    return copy.deepcopy(MOCK_DELEGATE_WRONG)


def simulated_caller(
    expectations: Iterable[RoutingExpectation] | None = None,
    weather: Dict[str, Any] | None = None,
    vote: Dict[str, Any] | None = None,
) -> ScriptedCaller:
    """A caller that answers like a healthy routing service.

    Tasks that match a known expectation get an acceptable recommendation;
    unknown tasks fall back to gemini-flash.
    """
    by_task = {exp.task: exp for exp in (expectations or DEFAULT_EXPECTATIONS)}

    def route(args: Dict[str, Any]) -> Dict[str, Any]:
        return route_fixture_for(by_task.get(args.get("task", "")))

    def answer_vote(args: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(vote or MOCK_VOTE_APPROVED)
        result["proposal"] = args.get("proposal", result["proposal"])
        result["strategy"] = args.get("strategy") or result["strategy"]
        return result

    return ScriptedCaller({
        ROUTE_TOOL: route,
        WEATHER_TOOL: lambda args: copy.deepcopy(weather or MOCK_WEATHER_HEALTHY),
        VOTE_TOOL: answer_vote,
    })
