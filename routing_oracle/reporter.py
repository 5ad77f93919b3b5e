"""Render oracle reports as markdown, JSON or plain text."""
from __future__ import annotations

import json
from typing import Any, Dict, List

from routing_oracle.pipeline import OracleReport, RoutingValidation, round_half_up
from routing_oracle.schemas import VoteResponse, WeatherResponse

REPORT_FORMATS = ("markdown", "json", "text")


def _percent(fraction: float) -> int:
    return int(round_half_up(fraction * 100))


def _number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def report_to_dict(report: OracleReport) -> Dict[str, Any]:
    return {
        "validations": [
            {
                "category": v.category,
                "recommended": v.recommended,
                "expected": v.expected,
                "correct": v.correct,
                "reasoning": v.reasoning,
                "alternatives": list(v.alternatives),
            }
            for v in report.validations
        ],
        "accuracy": report.accuracy,
        "weather": report.weather.model_dump(by_alias=True) if report.weather else None,
        "vote_result": report.vote_result.model_dump(by_alias=True) if report.vote_result else None,
    }


def report_from_dict(data: Dict[str, Any]) -> OracleReport:
    validations = tuple(
        RoutingValidation(
            category=item["category"],
            recommended=item["recommended"],
            expected=item["expected"],
            correct=bool(item["correct"]),
            reasoning=item.get("reasoning", ""),
            alternatives=tuple(item.get("alternatives") or ()),
        )
        for item in data.get("validations", [])
    )
    weather = data.get("weather")
    vote = data.get("vote_result")
    return OracleReport(
        validations=validations,
        accuracy=float(data.get("accuracy", 0)),
        weather=WeatherResponse.model_validate(weather) if weather is not None else None,
        vote_result=VoteResponse.model_validate(vote) if vote is not None else None,
    )


def parse_report(text: str) -> OracleReport:
    """Restore a report from its JSON rendering."""
    return report_from_dict(json.loads(text))


def generate_report(report: OracleReport, fmt: str = "markdown") -> str:
    """Render a report in one of REPORT_FORMATS."""
    if fmt == "json":
        return json.dumps(report_to_dict(report), indent=2)
    if fmt == "text":
        return _text_report(report)
    if fmt == "markdown":
        return _markdown_report(report)
    raise ValueError(f"Unknown report format '{fmt}'. Valid: {', '.join(REPORT_FORMATS)}")


def _markdown_report(report: OracleReport) -> str:
    correct = sum(1 for v in report.validations if v.correct)
    lines: List[str] = ["# Routing Oracle Report", ""]
    lines.append(f"**Accuracy:** {_percent(report.accuracy)}% ({correct}/{len(report.validations)})")
    lines.append("")

    lines.extend(["## Routing Results", ""])
    lines.append("| Category | Model | Expected CLI | Status |")
    lines.append("|----------|-------|-------------|--------|")
    for v in report.validations:
        status = "PASS" if v.correct else "FAIL"
        lines.append(f"| {v.category} | {v.recommended} | {v.expected} | {status} |")
    lines.append("")

    if report.misrouted:
        lines.extend(["## Misrouted Categories", ""])
        for v in report.misrouted:
            lines.append(f"- **{v.category}**: got `{v.recommended}`, expected `{v.expected}`")
            lines.append(f"  Reasoning: {v.reasoning}")
        lines.append("")

    if report.weather is not None:
        overall = report.weather.overall
        lines.extend(["## Weather Context", ""])
        lines.append(f"- Total tasks: {_number(overall.total_tasks)}")
        lines.append(f"- Overall success: {_percent(overall.success_rate)}%")
        lines.append(f"- CLIs reporting: {len(report.weather.cli_weather)}")
        lines.append("")

    if report.vote_result is not None:
        vote = report.vote_result
        lines.extend(["## Quality Vote", ""])
        lines.append(f"- Decision: **{vote.decision}**")
        lines.append(f"- Approval: {_number(vote.approval_percentage)}%")
        lines.append(f"- Strategy: {vote.strategy}")
        lines.append("")

    return "\n".join(lines)


def _text_report(report: OracleReport) -> str:
    lines = [f"Routing Oracle: {_percent(report.accuracy)}% accuracy", ""]
    for v in report.validations:
        status = "[PASS]" if v.correct else "[FAIL]"
        lines.append(f"{status} {v.category}: {v.recommended} (expected: {v.expected})")
    if report.vote_result is not None:
        lines.append("")
        lines.append(f"Vote: {report.vote_result.decision} ({_number(report.vote_result.approval_percentage)}%)")
    return "\n".join(lines)
