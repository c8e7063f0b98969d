"""Tests for the feedback loop controller."""

import threading

import pytest

from mutantgen.adapters.storage import MemoryStorage
from mutantgen.capabilities import Capabilities
from mutantgen.config import MutantGenConfig
from mutantgen.controller import CANCELLED_ERROR, FeedbackLoopController, LoopState
from mutantgen.errors import AnalysisError, ConfigurationError, ProviderError
from mutantgen.models import TerminalState

from conftest import ScriptedAnalyzer, ScriptedGenerator


class CancellingAnalyzer(ScriptedAnalyzer):
    """Analyzer that sets a cancel event after a given number of calls."""

    def __init__(self, steps, event: threading.Event, after: int) -> None:
        super().__init__(steps)
        self.event = event
        self.after = after

    def analyze(self, source_file, test_file, options):
        raw = super().analyze(source_file, test_file, options)
        if len(self.calls) >= self.after:
            self.event.set()
        return raw


class TestTerminalStates:
    """Tests for how loops end."""

    def test_target_reached(self, config, source, scripted):
        """Test a loop that climbs past the target on its last round."""
        capabilities = scripted([60.0, 75.0, 85.0])
        controller = FeedbackLoopController(config, capabilities)

        result = controller.run_loop(source, target_score=80, max_iterations=3)

        assert result.terminal_state == TerminalState.TARGET_REACHED
        assert result.iterations == 3
        assert result.final_score == pytest.approx(85.0)
        assert result.target_reached is True
        assert result.success is True
        assert [r.score for r in result.rounds] == pytest.approx([60.0, 75.0, 85.0])
        assert controller.state == LoopState.TARGET_REACHED

    def test_budget_exhausted(self, config, source, scripted):
        """Test a loop that never reaches its target."""
        capabilities = scripted([50.0, 60.0])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=90, max_iterations=2
        )

        assert result.terminal_state == TerminalState.BUDGET_EXHAUSTED
        assert result.iterations == 2
        assert result.final_score == pytest.approx(60.0)
        assert result.target_reached is False
        assert result.success is True

    def test_consecutive_failures_are_fatal(self, config, source, scripted):
        """Test that repeated failing rounds end the loop."""
        capabilities = scripted(
            [AnalysisError("engine crashed"), AnalysisError("engine crashed again"), 90.0]
        )

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=80, max_iterations=5
        )

        assert result.terminal_state == TerminalState.FATAL
        assert result.iterations == 2
        assert result.success is False
        assert result.error == "engine crashed again"
        assert all(not r.success for r in result.rounds)

    def test_single_failure_recovers(self, config, source, scripted):
        """Test that one failed round does not end the loop."""
        capabilities = scripted([60.0, AnalysisError("flaky"), 85.0])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=80, max_iterations=5
        )

        assert result.terminal_state == TerminalState.TARGET_REACHED
        assert [r.success for r in result.rounds] == [True, False, True]

    def test_first_round_reaches_target(self, config, source, scripted):
        """Test that a loop stops as soon as the target is met."""
        capabilities = scripted([95.0])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=80, max_iterations=5
        )

        assert result.iterations == 1
        assert len(capabilities.generator.calls) == 1

    @pytest.mark.parametrize("target", [50.0, 100.0])
    def test_target_is_inclusive(self, config, source, scripted, target):
        """Test that a score equal to the target reaches it."""
        capabilities = scripted([target])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=target, max_iterations=3
        )

        assert result.terminal_state == TerminalState.TARGET_REACHED
        assert result.iterations == 1

    def test_failed_round_never_reaches_target(self, config, source, scripted):
        """Test that a failed round with budget left keeps going."""
        capabilities = scripted(
            [80.0], generator_errors={1: ProviderError("timeout", cause=ProviderError.NETWORK)}
        )

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=80, max_iterations=3
        )

        assert result.rounds[0].success is False
        assert result.terminal_state == TerminalState.TARGET_REACHED
        assert result.iterations == 2

    def test_rounds_never_exceed_budget(self, config, source, scripted):
        """Test the budget bound with mixed outcomes."""
        capabilities = scripted([10.0, AnalysisError("x"), 20.0, 30.0])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=99, max_iterations=4
        )

        assert len(result.rounds) <= 4
        assert [r.round_index for r in result.rounds] == list(range(1, len(result.rounds) + 1))


class TestImprovementInputs:
    """Tests for what each round hands to the generator."""

    def test_improve_receives_latest_survivors(self, config, source, scripted):
        """Test that only the previous round's survivors are passed on."""
        capabilities = scripted([60.0, 70.0, 80.0])

        FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=95, max_iterations=3
        )

        calls = capabilities.generator.calls
        assert [c[0] for c in calls] == ["generate", "improve", "improve"]
        assert len(calls[1][3]) == 40
        assert len(calls[2][3]) == 30

    def test_improve_after_failed_analysis(self, config, source, scripted):
        """Test that a failed analysis passes no survivors but keeps the tests."""
        capabilities = scripted([60.0, AnalysisError("crash"), 70.0])

        FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=95, max_iterations=3
        )

        calls = capabilities.generator.calls
        assert calls[2][0] == "improve"
        assert calls[2][3] == []
        assert "call 2" in calls[2][2]

    def test_generate_again_when_no_tests_exist(self, config, source, scripted):
        """Test that a loop with no tests yet drafts again."""
        capabilities = scripted(
            [70.0], generator_errors={1: ProviderError("down")}
        )

        FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=95, max_iterations=2
        )

        assert [c[0] for c in capabilities.generator.calls] == ["generate", "generate"]


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_before_start(self, config, source, scripted):
        """Test that a pre-set event runs no rounds."""
        event = threading.Event()
        event.set()
        capabilities = scripted([90.0])

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, cancel_event=event
        )

        assert result.terminal_state == TerminalState.CANCELLED
        assert result.iterations == 0
        assert result.success is False
        assert result.error == CANCELLED_ERROR
        assert capabilities.generator.calls == []

    def test_cancel_between_rounds(self, config, source):
        """Test that cancellation takes effect at the next round boundary."""
        event = threading.Event()
        capabilities = Capabilities(
            generator=ScriptedGenerator(),
            analyzer=CancellingAnalyzer([10.0, 20.0, 30.0], event, after=2),
            storage=MemoryStorage(),
        )

        result = FeedbackLoopController(config, capabilities).run_loop(
            source, target_score=99, max_iterations=5, cancel_event=event
        )

        assert result.terminal_state == TerminalState.CANCELLED
        assert result.iterations == 2
        assert result.final_score == pytest.approx(20.0)
        assert result.success is False


class TestValidation:
    """Tests for parameter checks and controller reuse."""

    @pytest.mark.parametrize(
        ("target", "budget"),
        [(0.0, 3), (-5.0, 3), (100.5, 3), (80.0, 0)],
    )
    def test_invalid_parameters(self, config, source, scripted, target, budget):
        """Test that bad targets and budgets raise before any round."""
        capabilities = scripted([90.0])

        with pytest.raises(ConfigurationError):
            FeedbackLoopController(config, capabilities).run_loop(
                source, target_score=target, max_iterations=budget
            )
        assert capabilities.generator.calls == []

    def test_defaults_from_config(self, source, scripted):
        """Test that target and budget default to the configured values."""
        config = MutantGenConfig(storage="memory", target_score=70, max_iterations=2)

        result = FeedbackLoopController(config, scripted([10.0])).run_loop(source)

        assert result.target_score == 70
        assert result.max_iterations == 2
        assert result.iterations == 2

    def test_controller_runs_once(self, config, source, scripted):
        """Test that a controller cannot be reused."""
        controller = FeedbackLoopController(config, scripted([90.0]))
        controller.run_loop(source, target_score=80, max_iterations=1)

        with pytest.raises(RuntimeError):
            controller.run_loop(source, target_score=80, max_iterations=1)
