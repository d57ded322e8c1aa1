"""End-to-end tests for the visualization pipeline."""

import json
import time
from dataclasses import replace

import pytest

from codeviz.config import PipelineConfig
from codeviz.core.diagram import DiagramGenerator
from codeviz.core.fallback import BASIC_STRUCTURE_WARNING, SIMPLIFIED_WARNING
from codeviz.core.models import PipelineStage
from codeviz.core.pipeline import VisualizationPipeline
from codeviz.core.recognition import RecognitionEngine
from codeviz.languages import EcmaScriptAnalyzer
from codeviz.mcp.server import _handle_complexity, _handle_validate, _handle_visualize, call_tool

COUNTER = """
function Counter() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}
"""


class ExplodingEngine(RecognitionEngine):
    def recognize_patterns(self, tree, source=None):
        raise RuntimeError("recognizer crashed")


class SlowEngine(RecognitionEngine):
    def __init__(self, delay: float = 0.3) -> None:
        super().__init__()
        self.delay = delay

    def recognize_patterns(self, tree, source=None):
        time.sleep(self.delay)
        return super().recognize_patterns(tree, source)


class ExplodingGenerator(DiagramGenerator):
    def generate(self, patterns):
        raise RuntimeError("renderer crashed")


@pytest.fixture
def config() -> PipelineConfig:
    """Default limits, retrying without backoff delays."""
    return replace(PipelineConfig(), retry_base_delay_s=0)


@pytest.fixture
def pipeline(config: PipelineConfig) -> VisualizationPipeline:
    """Create a pipeline with the default components."""
    return VisualizationPipeline(config)


class TestVisualize:
    """Tests for complete runs."""

    @pytest.mark.asyncio
    async def test_empty_input(self, pipeline: VisualizationPipeline) -> None:
        """Empty input fails with a single syntax error instead of raising."""
        result = await pipeline.visualize("")

        assert not result.success
        assert len(result.errors) == 1
        assert "empty" in result.errors[0].description.lower()
        assert result.errors[0].code == "SYNTAX_ANALYZER_SYNTAX_ERROR"
        assert pipeline.stage is PipelineStage.FAILED
        assert not pipeline.is_running

    @pytest.mark.asyncio
    async def test_state_action(self, pipeline: VisualizationPipeline) -> None:
        progress: list[tuple[str, int]] = []

        result = await pipeline.visualize(COUNTER, lambda stage, pct: progress.append((stage, pct)))

        assert result.success
        assert not result.fallback_used
        assert [p.type for p in result.patterns] == ["state-action"]
        assert len(result.diagram.nodes) == 3
        assert progress == [
            ("parsing", 0),
            ("pattern-recognition", 25),
            ("visualization", 50),
            ("optimization", 75),
            ("done", 100),
        ]
        assert pipeline.stage is PipelineStage.DONE
        assert set(result.metrics.stage_times) == {"parsing", "pattern-recognition", "visualization"}
        assert result.metrics.duration is not None

    @pytest.mark.asyncio
    async def test_no_idiom(self, pipeline: VisualizationPipeline) -> None:
        result = await pipeline.visualize("const x = 1;")

        assert result.success
        assert result.patterns == []
        assert result.diagram.nodes == ()

    @pytest.mark.asyncio
    async def test_failing_progress_callback_is_ignored(self, pipeline: VisualizationPipeline) -> None:
        def explode(stage: str, pct: int) -> None:
            raise ValueError("bad callback")

        result = await pipeline.visualize(COUNTER, explode)

        assert result.success

    @pytest.mark.asyncio
    async def test_admission_rejected(self, pipeline: VisualizationPipeline) -> None:
        result = await pipeline.visualize("x;\n" * 3000)

        assert not result.success
        assert result.errors[0].code == "RESOURCE_GOVERNOR_ADMISSION_REJECTED_ERROR"
        assert "Try splitting the code into smaller parts" in result.errors[0].suggestions
        assert result.warnings[0].startswith("Code is too large")

    @pytest.mark.asyncio
    async def test_syntax_error(self, pipeline: VisualizationPipeline) -> None:
        result = await pipeline.visualize("const ok = 1;\nconst broken = (;\n")

        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].code == "SYNTAX_ANALYZER_SYNTAX_ERROR"
        assert result.errors[0].context.line >= 1
        assert result.language == "javascript"
        assert pipeline.stage is PipelineStage.FAILED

    def test_visualize_sync(self, pipeline: VisualizationPipeline) -> None:
        result = pipeline.visualize_sync(COUNTER)

        assert result.success
        payload = result.to_dict()
        assert payload["patterns"][0]["type"] == "state-action"
        assert json.dumps(payload)

    def test_visualize_sync_does_not_wait_for_abandoned_stage(self, config: PipelineConfig) -> None:
        config = replace(config, min_stage_budget_s=0.05, recognition_budget_cap_s=0.05)
        pipeline = VisualizationPipeline(config, engine=SlowEngine(delay=1.5))

        started = time.perf_counter()
        result = pipeline.visualize_sync(COUNTER)

        assert time.perf_counter() - started < 1.0
        assert result.success
        assert result.fallback_used


class TestSingleRun:
    """Tests for the one-run-at-a-time guard and cancellation."""

    @pytest.mark.asyncio
    async def test_second_request_is_busy(self, pipeline: VisualizationPipeline) -> None:
        handle = pipeline.start(COUNTER)

        busy = await pipeline.visualize(COUNTER)
        first = await handle.task

        assert not busy.success
        assert busy.errors[0].code == "PIPELINE_BUSY_ERROR"
        assert first.success

    @pytest.mark.asyncio
    async def test_start_while_busy(self, pipeline: VisualizationPipeline) -> None:
        handle = pipeline.start(COUNTER)
        second = pipeline.start(COUNTER)

        assert second.token is None
        assert (await second.task).errors[0].code == "PIPELINE_BUSY_ERROR"
        assert (await handle.task).success

    @pytest.mark.asyncio
    async def test_cancel_with_token(self, pipeline: VisualizationPipeline) -> None:
        handle = pipeline.start(COUNTER)

        assert pipeline.cancel(handle.token)
        result = await handle.task

        assert result.cancelled
        assert not result.success
        assert result.errors == []
        assert result.diagram is None
        assert pipeline.stage is PipelineStage.CANCELLED
        assert not pipeline.is_running

    @pytest.mark.asyncio
    async def test_wrong_token_is_ignored(self, pipeline: VisualizationPipeline) -> None:
        handle = pipeline.start(COUNTER)

        assert not pipeline.cancel("not-the-token")
        assert (await handle.task).success

    def test_cancel_when_idle(self, pipeline: VisualizationPipeline) -> None:
        assert not pipeline.cancel()

    @pytest.mark.asyncio
    async def test_guard_released_after_run(self, pipeline: VisualizationPipeline) -> None:
        await pipeline.visualize(COUNTER)

        assert (await pipeline.visualize(COUNTER)).success


class TestFallbacks:
    """Tests for degraded output when a stage fails."""

    @pytest.mark.asyncio
    async def test_recognition_failure_uses_lexical_fallback(self, config: PipelineConfig) -> None:
        pipeline = VisualizationPipeline(config, engine=ExplodingEngine())

        result = await pipeline.visualize(COUNTER)

        assert result.success
        assert result.fallback_used
        assert result.patterns == []
        assert BASIC_STRUCTURE_WARNING in result.warnings
        assert "Counter" in [node.label for node in result.diagram.nodes]

    @pytest.mark.asyncio
    async def test_generation_failure_uses_simplified_diagram(self, config: PipelineConfig) -> None:
        pipeline = VisualizationPipeline(config, generator=ExplodingGenerator())

        result = await pipeline.visualize(COUNTER)

        assert result.success
        assert result.fallback_used
        assert [node.label for node in result.diagram.nodes] == ["Counter"]
        assert SIMPLIFIED_WARNING in result.warnings
        assert "Removed feature: Advanced node types" in result.warnings

    @pytest.mark.asyncio
    async def test_recognition_timeout_falls_back(self, config: PipelineConfig) -> None:
        config = replace(config, min_stage_budget_s=0.05, recognition_budget_cap_s=0.05)
        pipeline = VisualizationPipeline(config, engine=SlowEngine())

        result = await pipeline.visualize(COUNTER)

        assert result.success
        assert result.fallback_used
        assert BASIC_STRUCTURE_WARNING in result.warnings

    @pytest.mark.asyncio
    async def test_whole_run_limit_bounds_stage_budgets(self, config: PipelineConfig) -> None:
        """Stage budgets alone would let the slow stage finish; the run limit does not."""
        config = replace(config, max_processing_time_s=0.15)
        pipeline = VisualizationPipeline(config, engine=SlowEngine(delay=0.5))

        result = await pipeline.visualize(COUNTER)

        assert result.success
        assert result.fallback_used
        assert BASIC_STRUCTURE_WARNING in result.warnings
        assert result.metrics.duration < 0.5

    @pytest.mark.asyncio
    async def test_exhausted_run_limit_fails_the_parse(self, config: PipelineConfig) -> None:
        class SlowAnalyzer(EcmaScriptAnalyzer):
            def parse(self, text):
                time.sleep(0.5)
                return super().parse(text)

        config = replace(config, max_processing_time_s=0.05)
        pipeline = VisualizationPipeline(config, analyzer=SlowAnalyzer())

        result = await pipeline.visualize(COUNTER)

        assert not result.success
        assert result.errors[0].code == "SYNTAX_ANALYZER_TIMEOUT_ERROR"
        assert pipeline.stage is PipelineStage.FAILED


class TestMcpHandlers:
    """Tests for the MCP tool handlers."""

    @pytest.mark.asyncio
    async def test_visualize(self) -> None:
        result = await _handle_visualize(COUNTER, None)

        assert result["success"]
        assert result["patterns"][0]["type"] == "state-action"

    @pytest.mark.asyncio
    async def test_invalid_threshold_is_reported(self) -> None:
        content = await call_tool("codeviz_visualize", {"code": COUNTER, "threshold": 2})

        assert "Confidence threshold" in json.loads(content[0].text)["error"]

    def test_complexity(self) -> None:
        result = _handle_complexity("x;\n" * 3000)

        assert not result["should_process"]
        assert result["complexity"]["line_count"] == 3000

    def test_validate(self) -> None:
        result = _handle_validate("const broken = (;")

        assert not result["is_valid"]
        assert "state-action" in result["available_patterns"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        content = await call_tool("nope", {})

        assert json.loads(content[0].text) == {"error": "Unknown tool: nope"}
