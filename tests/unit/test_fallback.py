"""Tests for error classification, retry and fallback diagrams."""

import asyncio
from dataclasses import replace

import pytest

from codeviz.config import PipelineConfig
from codeviz.core.exceptions import (
    AdmissionRejectedError,
    GrammarParseError,
    PipelineBusyError,
    PipelineCancelledError,
    StageTimeoutError,
    SyntaxAnalysisError,
)
from codeviz.core.fallback import (
    BASIC_STRUCTURE_WARNING,
    DIAGRAM_GENERATOR,
    NOTHING_FOUND_WARNING,
    PATTERN_RECOGNITION,
    SIMPLIFIED_WARNING,
    SYNTAX_ANALYZER,
    ErrorHandler,
    error_code,
)
from codeviz.core.models import CodeLocation, ErrorClass, PatternComplexity, RecognizedPattern, Severity
from codeviz.languages.models import ParseIssue


@pytest.fixture
def handler() -> ErrorHandler:
    """Create a handler that retries without sleeping."""
    return ErrorHandler(replace(PipelineConfig(), retry_base_delay_s=0))


def flaky(failures: list[BaseException], result: str = "ok"):
    """A stage raising each given error in turn, then succeeding.

    The budgets it was called with are recorded on ``stage.budgets``.
    """
    remaining = list(failures)

    async def stage(budget: float) -> str:
        stage.budgets.append(budget)
        if remaining:
            raise remaining.pop(0)
        return result

    stage.budgets = []
    return stage


def pattern(pattern_id: str, pattern_type: str) -> RecognizedPattern:
    return RecognizedPattern(
        id=pattern_id,
        type=pattern_type,
        confidence=0.9,
        complexity=PatternComplexity.SIMPLE,
        location=CodeLocation.empty(),
        nodes=[],
        connections=[],
    )


class TestClassify:
    """Tests for the failure taxonomy."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (GrammarParseError("bad"), ErrorClass.SYNTAX),
            (SyntaxError("bad"), ErrorClass.SYNTAX),
            (SyntaxAnalysisError("bad"), ErrorClass.SYNTAX),
            (AdmissionRejectedError("big", [], []), ErrorClass.ADMISSION_REJECTED),
            (StageTimeoutError("parse", 1.0), ErrorClass.TIMEOUT),
            (asyncio.TimeoutError(), ErrorClass.TIMEOUT),
            (PipelineCancelledError("stop"), ErrorClass.CANCELLED),
            (PipelineBusyError("busy"), ErrorClass.BUSY),
            (MemoryError(), ErrorClass.OUT_OF_MEMORY),
            (TypeError("nope"), ErrorClass.TYPE),
            (RuntimeError("flaky"), ErrorClass.TRANSIENT),
        ],
    )
    def test_classify(self, handler: ErrorHandler, error: BaseException, expected: ErrorClass) -> None:
        assert handler.classify(error) is expected

    def test_type_errors_retry_outside_the_analyzer(self, handler: ErrorHandler) -> None:
        assert handler.is_retryable(TypeError(), PATTERN_RECOGNITION)
        assert not handler.is_retryable(TypeError(), SYNTAX_ANALYZER)

    def test_terminal_classes(self, handler: ErrorHandler) -> None:
        assert not handler.is_retryable(GrammarParseError("bad"), PATTERN_RECOGNITION)
        assert not handler.is_retryable(PipelineBusyError("busy"), PATTERN_RECOGNITION)
        assert not handler.is_retryable(AdmissionRejectedError("big", [], []), PATTERN_RECOGNITION)


class TestRetryStage:
    """Tests for bounded retry."""

    @pytest.mark.asyncio
    async def test_transient_succeeds_on_third_attempt(self, handler: ErrorHandler) -> None:
        stage = flaky([RuntimeError("one"), RuntimeError("two")])

        assert await handler.retry_stage(PATTERN_RECOGNITION, stage, 2.0) == "ok"
        assert len(stage.budgets) == 3

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self, handler: ErrorHandler) -> None:
        stage = flaky([RuntimeError(str(i)) for i in range(5)])

        with pytest.raises(RuntimeError, match="2"):
            await handler.retry_stage(PATTERN_RECOGNITION, stage, 2.0)
        assert len(stage.budgets) == 3

    @pytest.mark.asyncio
    async def test_syntax_is_not_retried(self, handler: ErrorHandler) -> None:
        stage = flaky([GrammarParseError("bad")])

        with pytest.raises(GrammarParseError):
            await handler.retry_stage(SYNTAX_ANALYZER, stage, 2.0)
        assert len(stage.budgets) == 1

    @pytest.mark.asyncio
    async def test_timeout_retried_once_with_half_budget(self, handler: ErrorHandler) -> None:
        stage = flaky([StageTimeoutError("recognition", 1.0), StageTimeoutError("recognition", 0.5)])

        with pytest.raises(StageTimeoutError):
            await handler.retry_stage(PATTERN_RECOGNITION, stage, 1.0)
        assert stage.budgets == [1.0, 0.5]


class TestUserErrors:
    """Tests for user-facing error reports."""

    def test_code_format(self) -> None:
        assert error_code(PATTERN_RECOGNITION, ErrorClass.TIMEOUT) == "PATTERN_RECOGNITION_TIMEOUT_ERROR"
        assert (
            error_code("resource-governor", ErrorClass.ADMISSION_REJECTED)
            == "RESOURCE_GOVERNOR_ADMISSION_REJECTED_ERROR"
        )

    def test_timeout(self, handler: ErrorHandler) -> None:
        error = handler.to_user_error(StageTimeoutError("recognition", 1.0), PATTERN_RECOGNITION, "recognize")

        assert error.code == "PATTERN_RECOGNITION_TIMEOUT_ERROR"
        assert error.message == "Operation timed out"
        assert error.severity is Severity.MEDIUM
        assert 2 <= len(error.suggestions) <= 4
        assert error.context.component == PATTERN_RECOGNITION

    def test_unknown_error_gets_generic_advice(self, handler: ErrorHandler) -> None:
        error = handler.to_user_error(RuntimeError("boom"), DIAGRAM_GENERATOR, "generate")

        assert error.message == "Error in diagram-generator"
        assert 2 <= len(error.suggestions) <= 4
        assert len(set(error.suggestions)) == len(error.suggestions)

    def test_admission_keeps_governor_advice(self, handler: ErrorHandler) -> None:
        rejected = AdmissionRejectedError("Too big", ["Too big"], ["Split it", "Trim it"])
        error = handler.to_user_error(rejected, "resource-governor", "admission")

        assert error.message == "Too big"
        assert error.suggestions == ("Split it", "Trim it")

    def test_technical_error_is_private_by_default(self, handler: ErrorHandler) -> None:
        error = handler.to_user_error(RuntimeError("secret detail"), DIAGRAM_GENERATOR, "generate")

        assert "technical_error" not in error.to_dict()
        assert "secret detail" in error.to_dict(include_technical=True)["technical_error"]

    def test_parse_issue(self, handler: ErrorHandler) -> None:
        issue = ParseIssue(
            message="Unexpected symbol",
            line=3,
            column=7,
            start=20,
            end=21,
            suggestion="Check for missing or extra punctuation marks",
        )
        error = handler.parse_error_to_user_error(issue)

        assert error.code == "SYNTAX_ANALYZER_SYNTAX_ERROR"
        assert error.severity is Severity.HIGH
        assert (error.context.line, error.context.column) == (3, 7)
        assert error.suggestions[0] == "Check for missing or extra punctuation marks"
        assert len(error.suggestions) == 4

    def test_syntax_analysis_error_reports_first_issue(self, handler: ErrorHandler) -> None:
        issue = ParseIssue(message="Unexpected symbol", line=2, column=16, start=30, end=31)
        error = handler.to_user_error(SyntaxAnalysisError("Unexpected symbol", [issue]), SYNTAX_ANALYZER, "parse")

        assert error.code == "SYNTAX_ANALYZER_SYNTAX_ERROR"
        assert error.description == "Unexpected symbol"
        assert (error.context.line, error.context.column) == (2, 16)


class TestLexicalFallback:
    """Tests for the regex-only diagram."""

    def test_basic_structure(self, handler: ErrorHandler) -> None:
        result = handler.lexical_fallback("function foo() {}\nconst bar = 1;")

        assert [node.label for node in result.diagram.nodes] == ["foo", "bar"]
        assert [node.type for node in result.diagram.nodes] == ["function", "variable"]
        assert result.diagram.edges[0].label == "relates to"
        assert result.warnings == [BASIC_STRUCTURE_WARNING]

    def test_nothing_found(self, handler: ErrorHandler) -> None:
        result = handler.lexical_fallback("1 + 1")

        assert result.diagram.nodes == ()
        assert result.warnings == [NOTHING_FOUND_WARNING]


class TestSimplifiedDiagram:
    """Tests for the one-node-per-pattern diagram."""

    def test_chain(self, handler: ErrorHandler) -> None:
        result = handler.simplified_diagram(
            [pattern("a", "api-call"), pattern("b", "state-action"), pattern("c", "custom")]
        )
        diagram = result.diagram

        assert [node.label for node in diagram.nodes] == ["API Call", "Counter", "Code Element"]
        assert [node.id for node in diagram.nodes] == ["simple-a", "simple-b", "simple-c"]
        assert [node.position.y for node in diagram.nodes] == [0, 200, 400]
        assert [edge.label for edge in diagram.edges] == ["flows to", "flows to"]
        assert result.warnings == [SIMPLIFIED_WARNING]

    def test_edges_carry_explanation_and_source(self, handler: ErrorHandler) -> None:
        first = pattern("a", "api-call")
        first.location = CodeLocation(start=5, end=30, start_line=3, end_line=3, start_column=0, end_column=25)
        diagram = handler.simplified_diagram([first, pattern("b", "database")]).diagram
        edge = diagram.edges[0]

        assert edge.explanation == "This shows an action happening"
        assert edge.pattern_id == "a"
        assert edge.pattern_type == "api-call"
        assert edge.location.start_line == 3
        assert diagram.nodes[0].style.icon == "globe"
        assert diagram.nodes[1].style.icon == "database"

    def test_removed_features_by_stage(self, handler: ErrorHandler) -> None:
        result = handler.simplified_diagram([pattern("a", "database")], stage="edge-generation")

        assert "Edge animations" in result.removed_features
        assert result.diagram.edges == ()
