import unittest

from routing_oracle.callers import ScriptedCaller
from routing_oracle.errors import ToolCallError
from routing_oracle.expectations import DEFAULT_EXPECTATIONS
from routing_oracle.pipeline import (
    OracleConfig,
    OracleReport,
    RoutingValidation,
    build_proposal,
    compute_accuracy,
    fetch_weather,
    get_misrouted,
    is_acceptable,
    round_half_up,
    route_and_validate,
    run_oracle_pipeline,
    try_route,
    try_vote,
    vote_on_quality,
    weather_confirmations,
    weather_confirms,
)
from routing_oracle.schemas import ROUTE_TOOL, VOTE_TOOL, WEATHER_TOOL, WeatherResponse
from routing_oracle.simulation import (
    MOCK_DELEGATE_ARCHITECTURE,
    MOCK_DELEGATE_CODE,
    MOCK_DELEGATE_RESEARCH,
    MOCK_DELEGATE_WRONG,
    MOCK_VOTE_APPROVED,
    MOCK_VOTE_REJECTED,
    MOCK_WEATHER_COLD,
    MOCK_WEATHER_HEALTHY,
)

ARCHITECTURE, CODE_GENERATION, _, RESEARCH = DEFAULT_EXPECTATIONS[:4]


def _validation(category: str, correct: bool, recommended: str = "m", expected: str = "cli") -> RoutingValidation:
    return RoutingValidation(
        category=category,
        recommended=recommended,
        expected=expected,
        correct=correct,
        reasoning="",
    )


class RouteTests(unittest.IsolatedAsyncioTestCase):
    async def test_correct_architecture_route(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE})
        result = await route_and_validate(caller, ARCHITECTURE)
        self.assertEqual(result.category, "architecture")
        self.assertEqual(result.recommended, "claude-opus")
        self.assertEqual(result.expected, "claude")
        self.assertTrue(result.correct)
        self.assertIn("claude-opus", result.reasoning)

    async def test_correct_code_generation_route(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_CODE})
        result = await route_and_validate(caller, CODE_GENERATION)
        self.assertEqual(result.recommended, "codex-5.3")
        self.assertTrue(result.correct)

    async def test_detects_wrong_route(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_WRONG})
        result = await route_and_validate(caller, ARCHITECTURE)
        self.assertEqual(result.recommended, "gemini-flash")
        self.assertFalse(result.correct)
        self.assertEqual(result.alternatives, ())

    async def test_sends_task_and_capability_only(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE})
        await route_and_validate(caller, ARCHITECTURE)
        self.assertEqual(caller.calls, [(ROUTE_TOOL, {
            "task": ARCHITECTURE.task,
            "preferred_capability": "reasoning",
        })])

    async def test_keeps_alternative_model_names(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_CODE})
        result = await route_and_validate(caller, CODE_GENERATION)
        self.assertEqual(result.alternatives, ("codex-5.2", "claude-sonnet"))

    async def test_malformed_response_is_a_failure(self):
        caller = ScriptedCaller({ROUTE_TOOL: {"recommended_model": "claude-opus"}})
        result = await try_route(caller, ARCHITECTURE)
        self.assertFalse(result.ok)
        self.assertIn("delegate_response", result.error)
        with self.assertRaises(ToolCallError):
            await route_and_validate(caller, ARCHITECTURE)

    async def test_transport_failure_is_a_failure(self):
        caller = ScriptedCaller({ROUTE_TOOL: RuntimeError("connection reset")})
        result = await try_route(caller, ARCHITECTURE)
        self.assertFalse(result.ok)
        self.assertIn("connection reset", result.error)


class AcceptanceRuleTests(unittest.TestCase):
    def test_versioned_name_matches_family(self):
        self.assertTrue(is_acceptable("claude-opus-4-6", ["claude-opus"]))

    def test_family_matches_versioned_acceptable(self):
        self.assertTrue(is_acceptable("codex", ["codex-5.3"]))

    def test_unrelated_model_rejected(self):
        self.assertFalse(is_acceptable("gemini-flash", ["claude-opus", "claude-sonnet"]))


class WeatherTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_snapshot(self):
        caller = ScriptedCaller({WEATHER_TOOL: MOCK_WEATHER_HEALTHY})
        result = await fetch_weather(caller)
        self.assertEqual(result.overall.total_tasks, 50)
        self.assertEqual(len(result.cli_weather), 3)

    async def test_cold_snapshot(self):
        caller = ScriptedCaller({WEATHER_TOOL: MOCK_WEATHER_COLD})
        result = await fetch_weather(caller)
        self.assertEqual(result.overall.total_tasks, 0)
        self.assertEqual(result.cli_weather, [])
        self.assertIsNone(result.recommended_mappings)

    async def test_sends_include_adaptive(self):
        caller = ScriptedCaller({WEATHER_TOOL: MOCK_WEATHER_HEALTHY})
        await fetch_weather(caller)
        self.assertEqual(caller.calls_to(WEATHER_TOOL), [{"includeAdaptive": True}])

    async def test_filters_added_only_when_given(self):
        caller = ScriptedCaller({WEATHER_TOOL: MOCK_WEATHER_HEALTHY})
        await fetch_weather(caller, cli="codex", category="testing")
        self.assertEqual(
            caller.calls_to(WEATHER_TOOL),
            [{"includeAdaptive": True, "cli": "codex", "category": "testing"}],
        )

    async def test_failure_raises_from_plain_form(self):
        caller = ScriptedCaller({WEATHER_TOOL: RuntimeError("down")})
        with self.assertRaises(ToolCallError):
            await fetch_weather(caller)


class WeatherConfirmsTests(unittest.TestCase):
    def setUp(self):
        self.healthy = WeatherResponse.model_validate(MOCK_WEATHER_HEALTHY)
        self.cold = WeatherResponse.model_validate(MOCK_WEATHER_COLD)

    def test_confirms_matching_mapping(self):
        self.assertTrue(weather_confirms(self.healthy, "architecture", "claude"))
        self.assertTrue(weather_confirms(self.healthy, "code_generation", "codex"))

    def test_rejects_mismatched_mapping(self):
        self.assertFalse(weather_confirms(self.healthy, "architecture", "codex"))

    def test_absent_category(self):
        self.assertFalse(weather_confirms(self.healthy, "research", "gemini"))

    def test_cold_snapshot_confirms_nothing(self):
        self.assertFalse(weather_confirms(self.cold, "architecture", "claude"))

    def test_confirmations_per_expectation(self):
        flags = weather_confirmations(self.healthy, DEFAULT_EXPECTATIONS)
        self.assertEqual(len(flags), len(DEFAULT_EXPECTATIONS))
        self.assertTrue(flags["architecture"])
        self.assertTrue(flags["code_generation"])
        self.assertFalse(flags["research"])


class VoteTests(unittest.IsolatedAsyncioTestCase):
    async def test_proposal_summarises_validations(self):
        caller = ScriptedCaller({VOTE_TOOL: MOCK_VOTE_APPROVED})
        await vote_on_quality(caller, [_validation("architecture", True, "claude-opus", "claude")])
        proposal = caller.calls_to(VOTE_TOOL)[0]["proposal"]
        self.assertIn("100%", proposal)
        self.assertIn("architecture: CORRECT (got claude-opus, expected claude)", proposal)

    async def test_sends_quick_mode_and_real_votes(self):
        caller = ScriptedCaller({VOTE_TOOL: MOCK_VOTE_APPROVED})
        await vote_on_quality(caller, [])
        args = caller.calls_to(VOTE_TOOL)[0]
        self.assertEqual(args["strategy"], "simple_majority")
        self.assertIs(args["quickMode"], True)
        self.assertIs(args["simulateVotes"], False)

    async def test_returns_decision(self):
        caller = ScriptedCaller({VOTE_TOOL: MOCK_VOTE_APPROVED})
        result = await vote_on_quality(caller, [])
        self.assertEqual(result.decision, "approved")
        self.assertEqual(len(result.votes), 3)

    async def test_uses_requested_strategy(self):
        caller = ScriptedCaller({VOTE_TOOL: MOCK_VOTE_REJECTED})
        result = await vote_on_quality(caller, [], "supermajority")
        self.assertEqual(caller.calls_to(VOTE_TOOL)[0]["strategy"], "supermajority")
        self.assertEqual(result.decision, "rejected")

    async def test_oversized_proposal_rejected_by_remote(self):
        caller = ScriptedCaller({VOTE_TOOL: MOCK_VOTE_APPROVED})
        validations = [_validation("documentation", False, "x" * 200, "gemini") for _ in range(30)]
        result = await try_vote(caller, validations)
        self.assertFalse(result.ok)
        self.assertIn("vote_input", result.error)


class ProposalTests(unittest.TestCase):
    def test_exact_text(self):
        proposal = build_proposal([
            _validation("architecture", True, "claude-opus", "claude"),
            _validation("research", False, "codex-5.3", "gemini"),
        ])
        self.assertEqual(
            proposal,
            "Routing accuracy is 50% (1/2 correct).\n\n"
            "Results:\n"
            "architecture: CORRECT (got claude-opus, expected claude)\n"
            "research: WRONG (got codex-5.3, expected gemini)\n\n"
            "Should we approve this routing quality?",
        )

    def test_percentage_rounds_half_up(self):
        validations = [_validation("testing", i < 5, "m", "cli") for i in range(8)]
        # 5/8 = 62.5%
        self.assertIn("Routing accuracy is 63% (5/8 correct)", build_proposal(validations))

    def test_empty_list(self):
        self.assertTrue(build_proposal([]).startswith("Routing accuracy is 0% (0/0 correct)."))


class ScoringTests(unittest.TestCase):
    def test_all_correct(self):
        self.assertEqual(compute_accuracy([_validation("a", True), _validation("b", True)]), 1)

    def test_half_correct(self):
        self.assertEqual(compute_accuracy([_validation("a", True), _validation("b", False)]), 0.5)

    def test_two_thirds(self):
        validations = [_validation("a", True), _validation("b", True), _validation("c", False)]
        self.assertEqual(compute_accuracy(validations), 0.667)

    def test_empty(self):
        self.assertEqual(compute_accuracy([]), 0)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(0.3333, 3), 0.333)

    def test_misrouted_subset_in_order(self):
        validations = [
            _validation("architecture", False),
            _validation("testing", True),
            _validation("research", False),
        ]
        misrouted = get_misrouted(validations)
        self.assertEqual([v.category for v in misrouted], ["architecture", "research"])

    def test_misrouted_empty_when_all_correct(self):
        self.assertEqual(get_misrouted([_validation("architecture", True)]), ())

    def test_report_exposes_misrouted(self):
        report = OracleReport(
            validations=(_validation("architecture", True), _validation("testing", False)),
            accuracy=0.5,
        )
        self.assertEqual([v.category for v in report.misrouted], ["testing"])


class OraclePipelineTests(unittest.IsolatedAsyncioTestCase):
    async def test_single_expectation_without_extras(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE})
        report = await run_oracle_pipeline(caller, OracleConfig(expectations=(ARCHITECTURE,)))
        self.assertEqual(len(caller.calls), 1)
        self.assertEqual(report.accuracy, 1)
        self.assertIsNone(report.weather)
        self.assertIsNone(report.vote_result)

    async def test_three_expectations_one_wrong(self):
        # gemini-flash is acceptable for research, so the wrong route goes last
        config = OracleConfig(expectations=(RESEARCH, CODE_GENERATION, ARCHITECTURE))
        caller = ScriptedCaller({ROUTE_TOOL: [MOCK_DELEGATE_RESEARCH, MOCK_DELEGATE_CODE, MOCK_DELEGATE_WRONG]})
        report = await run_oracle_pipeline(caller, config)
        self.assertEqual(report.accuracy, 0.667)
        self.assertEqual([v.category for v in report.misrouted], ["architecture"])

    async def test_full_pipeline_with_extras(self):
        caller = ScriptedCaller({
            ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE,
            WEATHER_TOOL: MOCK_WEATHER_HEALTHY,
            VOTE_TOOL: MOCK_VOTE_APPROVED,
        })
        config = OracleConfig(
            expectations=(ARCHITECTURE,),
            include_weather=True,
            include_vote=True,
            vote_strategy="unanimous",
        )
        report = await run_oracle_pipeline(caller, config)
        self.assertEqual([name for name, _ in caller.calls], [ROUTE_TOOL, WEATHER_TOOL, VOTE_TOOL])
        self.assertEqual(report.weather.overall.total_tasks, 50)
        self.assertEqual(report.vote_result.decision, "approved")
        self.assertEqual(caller.calls_to(VOTE_TOOL)[0]["strategy"], "unanimous")

    async def test_route_failure_is_isolated(self):
        caller = ScriptedCaller({ROUTE_TOOL: [RuntimeError("boom"), MOCK_DELEGATE_CODE]})
        report = await run_oracle_pipeline(caller, OracleConfig(expectations=(ARCHITECTURE, CODE_GENERATION)))
        failed, ok = report.validations
        self.assertEqual(failed.recommended, "ERROR")
        self.assertFalse(failed.correct)
        self.assertEqual(failed.reasoning, "Tool call failed")
        self.assertEqual(failed.expected, "claude")
        self.assertEqual(failed.alternatives, ())
        self.assertTrue(ok.correct)
        self.assertEqual(report.accuracy, 0.5)

    async def test_failing_caller_still_completes(self):
        caller = ScriptedCaller({
            ROUTE_TOOL: RuntimeError("offline"),
            WEATHER_TOOL: RuntimeError("offline"),
            VOTE_TOOL: RuntimeError("offline"),
        })
        config = OracleConfig(expectations=(ARCHITECTURE,), include_weather=True, include_vote=True)
        report = await run_oracle_pipeline(caller, config)
        self.assertEqual(report.validations[0].recommended, "ERROR")
        self.assertEqual(report.accuracy, 0)
        self.assertIsNone(report.weather)
        self.assertIsNone(report.vote_result)

    async def test_invalid_weather_does_not_block_vote(self):
        caller = ScriptedCaller({
            ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE,
            WEATHER_TOOL: {"overall": "sunny"},
            VOTE_TOOL: MOCK_VOTE_REJECTED,
        })
        config = OracleConfig(expectations=(ARCHITECTURE,), include_weather=True, include_vote=True)
        report = await run_oracle_pipeline(caller, config)
        self.assertIsNone(report.weather)
        self.assertEqual(report.vote_result.decision, "rejected")

    async def test_vote_failure_keeps_weather(self):
        caller = ScriptedCaller({
            ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE,
            WEATHER_TOOL: MOCK_WEATHER_HEALTHY,
            VOTE_TOOL: RuntimeError("panel offline"),
        })
        config = OracleConfig(expectations=(ARCHITECTURE,), include_weather=True, include_vote=True)
        report = await run_oracle_pipeline(caller, config)
        self.assertEqual(report.accuracy, 1)
        self.assertEqual(report.weather.overall.total_tasks, 50)
        self.assertIsNone(report.vote_result)
        self.assertEqual(len(caller.calls_to(VOTE_TOOL)), 1)

    async def test_vote_sees_error_markers(self):
        caller = ScriptedCaller({ROUTE_TOOL: RuntimeError("offline"), VOTE_TOOL: MOCK_VOTE_REJECTED})
        config = OracleConfig(expectations=(ARCHITECTURE,), include_vote=True)
        await run_oracle_pipeline(caller, config)
        proposal = caller.calls_to(VOTE_TOOL)[0]["proposal"]
        self.assertIn("architecture: WRONG (got ERROR, expected claude)", proposal)

    async def test_extras_skipped_unless_requested(self):
        caller = ScriptedCaller({ROUTE_TOOL: MOCK_DELEGATE_ARCHITECTURE})
        await run_oracle_pipeline(caller, OracleConfig(expectations=(ARCHITECTURE,)))
        self.assertEqual(caller.calls_to(WEATHER_TOOL), [])
        self.assertEqual(caller.calls_to(VOTE_TOOL), [])


if __name__ == "__main__":
    unittest.main()
